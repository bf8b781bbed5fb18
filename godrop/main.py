# godrop/main.py

import click

from godrop.cli.main import godrop
from godrop.utils.logger import setup_logging


@click.group(context_settings=dict(help_option_names=['-h', '--help']))
def main():
    """
    Godrop client.

    Example: python -m godrop.main cli browse ~/Documents
    Example: python -m godrop.main cli receive ~/Drop --port 1111
    Example: python -m godrop.main cli viewer http://192.168.1.20:1111
    """
    setup_logging()


main.add_command(godrop, name='cli')

if __name__ == '__main__':
    main()
