"""Charting API — SMC structure analysis + indicator overlays + CSV upload."""

import asyncio
import csv
from datetime import datetime, timezone
from typing import Any, Generator

from fastapi import APIRouter, File, HTTPException, UploadFile
from loguru import logger
from pydantic import BaseModel, Field

from smclab.analysis.indicators import OVERLAY_INDICATORS, IndicatorEngine
from smclab.analysis.regime import classify_market_state, summarize_market_state
from smclab.analysis.smc_engine import SMCEngine
from smclab.config import settings
from smclab.models.market import Candle
from smclab.models.smc import SMCConfig

router = APIRouter(prefix="/api/chart", tags=["chart"])

MAX_UPLOAD_BYTES = settings.upload_max_mb * 1024 * 1024

DATE_FORMATS = ("%Y.%m.%d", "%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y")
TIME_FORMATS = ("%H:%M:%S", "%H:%M")
HEADER_NAMES = ("date", "time", "open", "<date>", "timestamp")


class IndicatorRequest(BaseModel):
    name: str
    params: dict[str, Any] = {}


class SMCRequest(BaseModel):
    candles: list[Candle]
    config: SMCConfig = Field(default_factory=SMCConfig)


class IndicatorsRequest(BaseModel):
    candles: list[Candle]
    indicators: list[IndicatorRequest] = []
    market_state: bool = False


def _check_size(count: int) -> None:
    if count > settings.max_candles:
        raise HTTPException(
            status_code=413,
            detail=f"Too many candles ({count}). Maximum per request is {settings.max_candles}",
        )


def _run_smc(candles: list[Candle], config: SMCConfig) -> dict[str, Any]:
    engine = SMCEngine(config).calculate(candles)
    out = engine.snapshot().to_dict()
    out["bars"] = engine.bar_count
    return out


async def _analyze(candles: list[Candle], config: SMCConfig) -> dict[str, Any]:
    """Run the SMC pass in a thread executor; ValueError maps to 400."""
    loop = asyncio.get_event_loop()
    try:
        return await loop.run_in_executor(None, _run_smc, candles, config)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post("/smc")
async def get_smc(req: SMCRequest):
    """Full SMC pass over the posted candles."""
    _check_size(len(req.candles))
    return await _analyze(req.candles, req.config)


@router.post("/indicators")
async def get_indicators(req: IndicatorsRequest):
    """Compute indicator series (and optionally market state) for the posted candles."""
    _check_size(len(req.candles))
    try:
        engine = IndicatorEngine(req.candles)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    loop = asyncio.get_event_loop()
    indicators_out: dict[str, Any] = {}
    errors: dict[str, str] = {}
    for ind in req.indicators:
        key = f"{ind.name}_{_param_key(ind.params)}"
        try:
            series = await loop.run_in_executor(
                None, engine.compute_series, ind.name, ind.params
            )
        except Exception as e:
            logger.warning(f"Failed to compute {ind.name}: {e}")
            errors[key] = str(e)
            continue
        ind_type = "overlay" if ind.name in OVERLAY_INDICATORS else "oscillator"
        indicators_out[key] = {
            "name": ind.name,
            "params": ind.params,
            "type": ind_type,
            "outputs": series,
        }

    result: dict[str, Any] = {
        "bars": len(req.candles),
        "indicators": indicators_out,
        "errors": errors,
    }
    if req.market_state:
        labels = await loop.run_in_executor(None, classify_market_state, req.candles)
        result["market_state"] = {"labels": labels, "summary": summarize_market_state(labels)}
    return result


@router.post("/upload")
async def upload_file(file: UploadFile = File(...)):
    """Upload an MT4/MT5-exported or plain OHLC CSV and analyse it with the default config."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")

    ext = file.filename.lower().rsplit(".", 1)[-1] if "." in file.filename else ""
    if ext not in ("csv", "txt"):
        raise HTTPException(status_code=400, detail="File must be .csv or .txt")

    # Enforce upload size limit
    content = await _read_with_limit(file, MAX_UPLOAD_BYTES)
    text = content.decode("utf-8-sig", errors="replace")

    skipped: list[int] = []
    candles = _normalize(list(_parse_csv_gen(text, skipped)))
    if skipped:
        logger.warning(f"{file.filename}: skipped {len(skipped)} unparseable row(s), first at line {skipped[0]}")
    if not candles:
        raise HTTPException(status_code=400, detail="Could not parse any candles from CSV")
    _check_size(len(candles))

    smc = await _analyze(candles, SMCConfig())
    return {
        "filename": file.filename,
        "bars_imported": len(candles),
        "rows_skipped": len(skipped),
        "candles": [c.model_dump() for c in candles],
        "smc": smc,
    }


async def _read_with_limit(file: UploadFile, max_bytes: int) -> bytes:
    """Read upload file with size limit to prevent OOM."""
    chunks = []
    total = 0
    while True:
        chunk = await file.read(1024 * 1024)  # 1MB at a time
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum upload size is {max_bytes // (1024*1024)} MB",
            )
        chunks.append(chunk)
    return b"".join(chunks)


def _param_key(params: dict) -> str:
    """Create a short key from indicator params (e.g. '14' or '20_2.0')."""
    if not params:
        return "default"
    vals = [str(v) for v in params.values()]
    return "_".join(vals)


def _normalize(candles: list[Candle]) -> list[Candle]:
    """Sort by time; a later row with a duplicate timestamp replaces the earlier one."""
    by_time = {c.time: c for c in candles}
    out = [by_time[t] for t in sorted(by_time)]
    if len(out) != len(candles):
        logger.warning(f"Dropped {len(candles) - len(out)} duplicate timestamp(s) from upload")
    return out


def _parse_csv_gen(text: str, skipped: list[int] | None = None) -> Generator[Candle, None, None]:
    """Parse CSV as a generator. Line numbers of rejected rows go to `skipped`."""
    lines = text.strip().splitlines()
    if not lines:
        return

    # Detect delimiter
    first_data = lines[1] if len(lines) > 1 else lines[0]
    delimiter = "\t" if "\t" in first_data else ";" if ";" in first_data else ","

    reader = csv.reader(lines, delimiter=delimiter)
    for line_no, row in enumerate(reader, start=1):
        if not row:
            continue
        if line_no == 1 and any(h.strip().lower() in HEADER_NAMES for h in row):
            continue
        try:
            candle = _parse_row(row)
        except ValueError:
            candle = None
        if candle is None:
            if skipped is not None:
                skipped.append(line_no)
            continue
        yield candle


def _parse_timestamp(fields: list[str]) -> tuple[int, list[str]] | None:
    """Leading timestamp of a row as unix seconds (UTC), plus the remaining fields."""
    if fields[0].isdigit():
        value = int(fields[0])
        # Millisecond epochs
        if value > 10**11:
            value //= 1000
        return value, fields[1:]

    for date_fmt in DATE_FORMATS:
        # Separate date and time columns (most common MT5 export)
        for time_fmt in TIME_FORMATS:
            try:
                dt = datetime.strptime(f"{fields[0]} {fields[1]}", f"{date_fmt} {time_fmt}")
                return int(dt.replace(tzinfo=timezone.utc).timestamp()), fields[2:]
            except ValueError:
                continue
        # Single datetime or date-only column
        for fmt in [f"{date_fmt} {t}" for t in TIME_FORMATS] + [f"{date_fmt}T{t}" for t in TIME_FORMATS] + [date_fmt]:
            try:
                dt = datetime.strptime(fields[0], fmt)
                return int(dt.replace(tzinfo=timezone.utc).timestamp()), fields[1:]
            except ValueError:
                continue
    return None


def _parse_row(row: list[str]) -> Candle | None:
    """Parse a single CSV row into a Candle."""
    # Clean fields
    fields = [f.strip().strip("<>") for f in row]
    if len(fields) < 5:
        return None

    parsed = _parse_timestamp(fields)
    if parsed is None:
        return None
    time, values = parsed
    if len(values) < 4:
        return None

    o, h, l, c = float(values[0]), float(values[1]), float(values[2]), float(values[3])
    vol = float(values[4]) if len(values) > 4 and values[4] else 0.0
    return Candle(time=time, open=o, high=h, low=l, close=c, volume=vol)
