import argparse
import json
import sys

from .validation import has_errors, validate_exam_payload

def _load_json(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)

def validate(exam_path: str, *, strict: bool = False) -> int:
    try:
        payload = _load_json(exam_path)
    except (OSError, json.JSONDecodeError) as exc:
        print(f"ERROR: {exam_path}: {exc}")
        return 1

    issues = validate_exam_payload(payload)
    for issue in issues:
        print(f"{issue.severity.upper()}: {issue.location()}: {issue.message}")
    if has_errors(issues) or (strict and issues):
        return 1
    print("OK")
    return 0

def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate an exam questions JSON file.")
    parser.add_argument("--exam", default="data/questions.json")
    parser.add_argument("--strict", action="store_true", help="treat warnings as errors")
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    return validate(args.exam, strict=args.strict)

def cli() -> None:
    raise SystemExit(main())

if __name__ == "__main__":
    cli()
