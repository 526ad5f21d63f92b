import json
import os
from logging import (
    basicConfig,
    getLogger,
    DEBUG,
    INFO,
    WARNING,
    ERROR,
    CRITICAL,
    StreamHandler,
    Formatter,
    LogRecord,
)

from nodekeeper.args import ArgumentParser
from nodekeeper.types import Json

getLogger().setLevel(ERROR)
getLogger("nodekeeper").setLevel(INFO)
# boto is very chatty on debug level
getLogger("botocore").setLevel(WARNING)
getLogger("boto3").setLevel(WARNING)


def add_args(arg_parser: ArgumentParser) -> None:
    group = arg_parser.add_mutually_exclusive_group()
    group.add_argument(
        "--verbose",
        "-v",
        help="Verbose logging",
        dest="verbose",
        action="store_true",
        default=False,
    )
    group.add_argument(
        "--quiet",
        help="Only log errors",
        dest="quiet",
        action="store_true",
        default=False,
    )


class JsonFormatter(Formatter):
    """
    Renders every record as one json object per line.
    """

    def __init__(self, process: str, time_format: str = "%Y-%m-%dT%H:%M:%S") -> None:
        super().__init__()
        self.process = process
        self.time_format = time_format

    def format(self, record: LogRecord) -> str:
        js: Json = {
            "timestamp": self.formatTime(record, self.time_format),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pid": record.process,
            "thread": record.threadName,
            "process": self.process,
        }
        if record.exc_info:
            js["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            js["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(js, default=str)


def setup_logger(proc: str, *, force: bool = True, verbose: bool = False, quiet: bool = False) -> None:
    if os.environ.get("NODEKEEPER_LOG_TEXT", "false").lower() == "true":
        log_format = f"%(asctime)s|{proc}|%(levelname)5s|%(process)d|%(threadName)10s  %(message)s"
        log_format = os.environ.get("NODEKEEPER_LOG_FORMAT", log_format)
        basicConfig(format=log_format, datefmt="%y-%m-%d %H:%M:%S", force=force)
    else:
        handler = StreamHandler()
        handler.setFormatter(JsonFormatter(proc))
        basicConfig(handlers=[handler], force=force)
    if verbose:
        getLogger("nodekeeper").setLevel(DEBUG)
    elif quiet:
        getLogger().setLevel(WARNING)
        getLogger("nodekeeper").setLevel(CRITICAL)
    else:
        getLogger("nodekeeper").setLevel(INFO)
