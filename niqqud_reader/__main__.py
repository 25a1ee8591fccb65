"""Package entry point for ``python -m niqqud_reader``.

WHY: Users run the reader as ``python -m niqqud_reader detect "..."``.
Python's ``-m`` flag looks for ``__main__.py`` inside the package and
executes it.

HOW: Delegates to the CLI's main() function.
"""

if __name__ == "__main__":
    from niqqud_reader.cli import main
    main()
