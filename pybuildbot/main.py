import sys

from returns.io import IOResultE
from returns.result import Failure, Success
from returns.unsafe import unsafe_perform_io

from pybuildbot.args import ArgsConfig, args_parse
from pybuildbot.commands import build, clean


def pybuildbot(args: ArgsConfig) -> IOResultE[int]:
    match args.action:
        case "build":
            return build(args)
        case "clean":
            return clean(args)
        case action:
            return IOResultE.from_failure(NotImplementedError(f"{action} is not implemented"))


def main(argv: list[str] | None = None) -> int:
    args = args_parse(sys.argv[1:] if argv is None else argv)
    match unsafe_perform_io(pybuildbot(args)):
        case Success(code):
            return code
        case Failure(error):
            print(f"[pybuildbot] Error: {error}")
            return 1
    return 1


if __name__ == "__main__":
    sys.exit(main())
