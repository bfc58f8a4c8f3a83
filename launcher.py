#!/usr/bin/env python3
"""
Launcher para Letras flotantes
Este archivo es el punto de entrada para PyInstaller
"""

import sys
from floating_lyrics.main import main

if __name__ == "__main__":
    sys.exit(main())
