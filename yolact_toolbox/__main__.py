import sys

from yolact_toolbox.cli.infer import main

if __name__ == "__main__":
    sys.exit(main())
