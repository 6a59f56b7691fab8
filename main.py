"""MV-370 gateway CLI.

Run from a checkout without installing:

    python main.py                                          # read messages
    python main.py '{"tel":"012345678","text":"Hello"}'     # send a message
    python main.py --host 10.0.0.5:23 --user voip --pass 1234 --debug
"""

import sys

from mv370.cli import main


if __name__ == '__main__':
    sys.exit(main())
