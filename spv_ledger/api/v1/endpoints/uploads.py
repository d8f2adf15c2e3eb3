"""Shared handling for CSV file uploads."""

from fastapi import UploadFile

from spv_ledger.core.config import settings
from spv_ledger.core.exceptions import ValidationFailed


async def read_csv_upload(file: UploadFile) -> bytes:
    """Read an uploaded CSV, rejecting anything empty, non-CSV or oversized."""
    if file.filename and not file.filename.lower().endswith(".csv"):
        raise ValidationFailed(f"Expected a .csv file, got '{file.filename}'")
    payload = await file.read()
    if not payload:
        raise ValidationFailed("Uploaded file is empty")
    if len(payload) > settings.CSV_MAX_UPLOAD_BYTES:
        raise ValidationFailed(
            f"Uploaded file exceeds the {settings.CSV_MAX_UPLOAD_BYTES} byte limit"
        )
    return payload
