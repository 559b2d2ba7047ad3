"""
Demo: Read the example UVL model, report problems, anonymize it and
print both models as YAML.
"""

import sys

from fmcore.examples import EXAMPLE_UVL
from fmcore.obfuscator import anonymize, get_random_salt
from fmcore.summary import model_to_yaml
from fmcore.uvl_format import read_uvl_file, read_uvl_string


def print_problems(problems):
    """Pretty-print a ProblemList."""
    if not problems:
        print("✨ NO PROBLEMS - model read cleanly")
        return
    print("⚠️  PROBLEMS")
    for i, problem in enumerate(problems, 1):
        print(f"  {i}. {problem}")


if __name__ == "__main__":
    if len(sys.argv) > 1:
        model, problems = read_uvl_file(sys.argv[1])
    else:
        model, problems = read_uvl_string(EXAMPLE_UVL)

    print()
    print("=" * 70)
    print("FEATURE MODEL")
    print("=" * 70)
    print_problems(problems)
    if problems.contains_error():
        sys.exit(1)
    print()
    print(model_to_yaml(model))

    salt = get_random_salt()
    anonymized = anonymize(model, salt=salt)

    print("=" * 70)
    print(f"ANONYMIZED (salt {salt})")
    print("=" * 70)
    print(model_to_yaml(anonymized))
