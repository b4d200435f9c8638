from pprint import pprint
from typing import TextIO


DEBUG_INFO_PATH = r"DebugInfo.txt"
PPRINT_WIDTH = 120

debug_file: TextIO | None = None


def open_debug_file(path: str = DEBUG_INFO_PATH) -> TextIO:
    global debug_file
    close_debug_file()
    debug_file = open(path, mode="w", encoding="utf-8")
    return debug_file


def close_debug_file():
    global debug_file
    if debug_file is not None:
        debug_file.close()
        debug_file = None


def debug_dump(heading: str, obj: object):
    if debug_file is None:
        return
    print(f"========== {heading} ==========", file=debug_file)
    print("", file=debug_file)
    if isinstance(obj, str):
        print(obj, file=debug_file)
    else:
        pprint(obj, stream=debug_file, width=PPRINT_WIDTH, sort_dicts=False)
    print("", file=debug_file)


def warn(message: str):
    print(f"WARNING: {message}")
