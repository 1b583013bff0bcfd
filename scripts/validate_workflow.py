"""
Validate the workflow graph stored on a functionality
Run: python -m scripts.validate_workflow FN-...
"""
import argparse
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ticketflow.domain.errors import DomainError
from ticketflow.services.functionality_service import FunctionalityService


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate a functionality's workflow graph")
    parser.add_argument("functionality_id", help="Functionality to check")
    args = parser.parse_args()

    try:
        result = FunctionalityService().validate_workflow(args.functionality_id)
    except DomainError as e:
        print(f"Error: {e.message}")
        return 2

    if not result["is_valid"]:
        print(f"Workflow of {args.functionality_id} is INVALID")
        for error in result["errors"]:
            print(f"  - {error}")
        return 1

    print(f"Workflow of {args.functionality_id} is valid")
    print(f"  First node: {result['first_node']}")
    print(f"  End nodes: {', '.join(result['end_nodes'])}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
