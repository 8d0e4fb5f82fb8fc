"""
Audit record sinks: the ten-line file and a human-readable summary.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from loguru import logger

from payflow.models import AuditRecord, format_btc


def write_record(record: AuditRecord, path: Path | str) -> Path:
    """
    Write the record's ten lines to `path`.

    The file is written to a temporary sibling and renamed into place, so a
    reader sees either the complete record or no file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(record.render())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(f"Audit record written to {path}")
    return path


def format_summary(record: AuditRecord) -> str:
    lines = [
        "=== Transaction Details ===",
        f"Transaction ID:   {record.txid}",
        f"Input address:    {record.input_address}",
        f"Input amount:     {format_btc(record.input_amount)} BTC",
        f"Payee address:    {record.payee_address}",
        f"Payee amount:     {format_btc(record.payee_amount)} BTC",
        f"Change address:   {record.change_address}",
        f"Change amount:    {format_btc(record.change_amount)} BTC",
        f"Fee:              {format_btc(record.fee)} BTC",
        f"Block height:     {record.block_height}",
        f"Block hash:       {record.block_hash}",
        "===========================",
    ]
    return "\n".join(lines)
