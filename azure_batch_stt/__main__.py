"""Package entry point for ``python -m azure_batch_stt``.

Delegates to the CLI's main() function.
"""

from azure_batch_stt.cli import main

if __name__ == "__main__":
    main()
