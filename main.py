# main.py

from godrop.main import main

if __name__ == '__main__':
    main()
