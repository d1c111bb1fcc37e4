import sys

from pixel_editor.main import run

sys.exit(run())
