# metaswap/server.py
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from io import BytesIO
from pathlib import Path
import logging
import uuid
from metaswap import settings
from metaswap.cleaners.merge import merge_files
from metaswap.cleaners.segments import Segment, is_metadata_marker, iter_regions
from metaswap.errors import MergeError, ScanError
from metaswap.utils.cleanup import cleanup_once, start_background_cleanup
from metaswap.utils.signature import detect_extension, ext_equivalent

logger = logging.getLogger(__name__)

app = FastAPI(title="metaswap: JPEG metadata replacement")

@app.on_event("startup")
def bootstrap():
    start_background_cleanup(interval_seconds=120)

def _secure_ext(filename: str) -> str:
    return Path(filename).suffix.lower()

async def _validate_and_read(upload_file: UploadFile) -> bytes:
    ext = _secure_ext(upload_file.filename or "")
    if ext not in settings.ALLOWED_EXTENSIONS:
        raise HTTPException(status_code=400, detail=f"Extension {ext or '(none)'} not allowed.")

    data = await upload_file.read()

    if len(data) > settings.MAX_FILE_SIZE:
        raise HTTPException(status_code=400, detail=f"File too large. Limit is {settings.MAX_FILE_SIZE} bytes.")

    _verify_signature(data, upload_file.filename)
    return data

def _verify_signature(data: bytes, filename: str) -> None:
    claimed = Path(filename).suffix.lower()
    detected = detect_extension(data)
    if detected is None:
        raise HTTPException(status_code=400, detail="Not a JPEG file.")
    if not ext_equivalent(claimed, detected):
        raise HTTPException(
            status_code=400,
            detail=f"Extension spoofing detected: file looks like {detected} but was uploaded as {claimed}."
        )

@app.post("/scrub")
async def scrub(
    image: UploadFile = File(...),
    metadata: UploadFile | None = File(None),
    strip_trailer: bool = Form(settings.STRIP_TRAILER),
):
    if metadata is not None and not metadata.filename:
        metadata = None

    data = await _validate_and_read(image)
    donor_data = await _validate_and_read(metadata) if metadata is not None else None

    uid = uuid.uuid4().hex
    ext = _secure_ext(image.filename)
    src_path = settings.UPLOAD_DIR / f"{uid}_image{ext}"
    src_path.write_bytes(data)
    donor_path = None
    if donor_data is not None:
        donor_path = settings.UPLOAD_DIR / f"{uid}_metadata{_secure_ext(metadata.filename)}"
        donor_path.write_bytes(donor_data)

    kind = "stripped" if donor_path is None else "swapped"
    dst_path = settings.OUTPUT_DIR / f"{uid}_{Path(image.filename).stem}_{kind}{ext}"
    try:
        merge_files(dst_path, src_path, donor_path, strip_trailer=strip_trailer)
    except MergeError as e:
        dst_path.unlink(missing_ok=True)
        if isinstance(e.__cause__, ScanError):
            raise HTTPException(status_code=422, detail=str(e))
        logger.exception("Error scrubbing %s", image.filename)
        raise HTTPException(status_code=500, detail="Could not write the scrubbed image.")
    finally:
        src_path.unlink(missing_ok=True)
        if donor_path is not None:
            donor_path.unlink(missing_ok=True)
        cleanup_once()

    return {
        "download": f"/download/{dst_path.name}",
        "suggested_filename": dst_path.name,
        "stripped": donor_path is None,
    }

@app.post("/inspect")
async def inspect(
    upload: UploadFile = File(...),
    strip_trailer: bool = Form(settings.STRIP_TRAILER),
):
    data = await _validate_and_read(upload)
    segments = []
    scan_bytes = 0
    try:
        for region in iter_regions(BytesIO(data), strip_trailer=strip_trailer):
            if isinstance(region, Segment):
                segments.append({
                    "marker": region.marker,
                    "name": region.name,
                    "offset": region.offset,
                    "length": region.length,
                    "metadata": is_metadata_marker(region.marker),
                })
            else:
                scan_bytes += len(region.data)
    except ScanError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"segments": segments, "scan_bytes": scan_bytes}

@app.get("/download/{name}")
def download(name: str):
    path = settings.OUTPUT_DIR / name
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found (maybe it expired and was deleted).")
    return FileResponse(path, media_type="image/jpeg", filename=name)
