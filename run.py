"""
Gateway Runner

This script is the entry point the editor plugin launches.
Use: python run.py '<json options>'
"""

from gateway.server import main


if __name__ == "__main__":
    main()
