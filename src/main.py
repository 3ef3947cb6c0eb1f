import csv
import sys
import logging
from decimal import Decimal, localcontext
from typing import Iterable, List, Optional, TextIO

from pydantic import ValidationError

from config import EngineConfig
from models import AccountSnapshot
from payments_engine import PaymentsEngine

logger = logging.getLogger(__name__)

USAGE = "Usage: payments-ledger <input.csv | ->"


def format_decimal(value: Decimal, places: int = 4) -> str:
    """Format decimal with exactly `places` fractional digits (banker's rounding)."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + places + 2)
        return f"{value.quantize(Decimal(1).scaleb(-places)):f}"


def write_snapshot(snapshots: Iterable[AccountSnapshot], out: TextIO, places: int = 4) -> None:
    print("client,available,held,total,locked", file=out)
    for snapshot in snapshots:
        print(
            f"{snapshot.client_id},"
            f"{format_decimal(snapshot.available, places)},"
            f"{format_decimal(snapshot.held, places)},"
            f"{format_decimal(snapshot.total, places)},"
            f"{str(snapshot.locked).lower()}",
            file=out,
        )


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print(USAGE, file=sys.stderr)
        return 1

    try:
        config = EngineConfig()
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=config.log_level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    engine = PaymentsEngine(
        num_workers=config.num_workers,
        allow_deposits_when_locked=config.allow_deposits_when_locked,
    )

    filepath = args[0]
    try:
        if filepath == "-":
            engine.process_stream(sys.stdin)
        else:
            engine.process_file(filepath)
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        logger.error(f"Could not read {filepath}: {e}")
        return 1

    write_snapshot(engine.ledger.snapshot(), sys.stdout, config.output_precision)
    print(engine.stats.summary(), file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
