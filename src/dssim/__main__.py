"""Allow `python -m dssim`"""
from .cli import main

main()
