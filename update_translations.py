# update_translations.py
"""
Refresh the message catalogs of API error messages
Runs pybabel extract / init / update / compile over the exam_portal package
"""
import os
import re
import subprocess
import sys

BABEL_CONFIG = 'babel.cfg'
TRANSLATIONS_DIR = 'translations'
# English msgids are the source language; only these catalogs are maintained
LANGUAGES = ['ru']


def run_command(args, description):
    print(f"{description}: {' '.join(args)}")
    try:
        subprocess.run(args, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as e:
        print(f"Command failed: {e}")
        print(e.stderr)
        sys.exit(1)


def count_untranslated(po_file_path):
    """Number of entries with an empty msgstr"""
    with open(po_file_path, 'r', encoding='utf-8') as f:
        content = f.read()
    # The header entry (msgid "") is not a message
    return len([m for m in re.findall(r'msgid\s+"([^"]*)"\s*\nmsgstr\s+""', content) if m])


def main():
    os.makedirs(TRANSLATIONS_DIR, exist_ok=True)
    pot_file = os.path.join(TRANSLATIONS_DIR, 'messages.pot')

    run_command(['pybabel', 'extract', '-F', BABEL_CONFIG, '-k', '_l', '-o', pot_file, 'exam_portal'],
                "Extracting messages")

    for lang in LANGUAGES:
        po_file = os.path.join(TRANSLATIONS_DIR, lang, 'LC_MESSAGES', 'messages.po')
        if not os.path.exists(po_file):
            run_command(['pybabel', 'init', '-i', pot_file, '-d', TRANSLATIONS_DIR, '-l', lang],
                        f"Creating catalog for {lang}")
        else:
            run_command(['pybabel', 'update', '-i', pot_file, '-d', TRANSLATIONS_DIR, '-l', lang],
                        f"Updating catalog for {lang}")

        missing = count_untranslated(po_file)
        if missing:
            print(f"  {po_file}: {missing} untranslated messages")

    run_command(['pybabel', 'compile', '-d', TRANSLATIONS_DIR], "Compiling catalogs")


if __name__ == "__main__":
    main()
