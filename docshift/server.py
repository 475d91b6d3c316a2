"""
HTTP upload endpoint.

    POST /upload/<output_format>   multipart "file" part -> converted document
    GET  /formats                  supported formats and directions

The input format comes from the upload's file extension. A .zip upload
must hold exactly one document plus the images it references. Images the
target format keeps outside its bytes are returned only with ?bundle=zip,
as a zip holding the document and its images.
"""

import argparse
import io
import os
import zipfile
from typing import Optional

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

from .config import Config, load_config
from .converters.base import ConversionWarnings
from .core import DocumentConverter
from .errors import ConversionError, MalformedInput, UnknownFormat
from .formats import DocumentFormat
from .model.images import BundleImageLoader, ImageBundle
from .utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

UPLOAD_EXTENSIONS = {"md", "html", "htm", "txt", "pdf", "json"}
CLIENT_ERRORS = (MalformedInput, UnknownFormat)


def _split_name(filename: str) -> tuple[str, str]:
    stem, ext = os.path.splitext(os.path.basename(filename))
    return stem, ext.lower().lstrip(".")


def _unpack_zip(data: bytes) -> tuple[str, bytes, ImageBundle]:
    """Return (document name, document bytes, images) from an uploaded archive."""
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as exc:
        raise MalformedInput(f"Invalid zip upload: {exc}") from exc

    documents = []
    images = ImageBundle()
    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            if _split_name(info.filename)[1] in UPLOAD_EXTENSIONS:
                documents.append((info.filename, archive.read(info)))
            else:
                images.insert(info.filename, archive.read(info))

    if len(documents) != 1:
        raise MalformedInput(f"zip upload must contain exactly one document, found {len(documents)}")
    name, content = documents[0]
    return name, content, images


def _pack_zip(name: str, output: bytes, images: ImageBundle) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(name, output)
        for key, data in images.items():
            archive.writestr(key, data)
    return buffer.getvalue()


def _attachment(body: bytes, filename: str, mimetype: str, warnings: ConversionWarnings) -> Response:
    response = Response(body, mimetype=mimetype)
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    response.headers["X-Conversion-Warnings"] = str(len(warnings))
    return response


def create_app(config: Optional[Config] = None) -> Flask:
    """Application factory."""
    config = config or load_config()
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.server.max_upload_mb * 1024 * 1024
    engine = DocumentConverter(config)

    @app.errorhandler(ConversionError)
    def conversion_error(exc: ConversionError):
        status = 400 if isinstance(exc, CLIENT_ERRORS) else 500
        logger.warning("Conversion failed (%d): %s", status, exc)
        return jsonify(error=exc.kind, description=exc.description or ""), status

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(exc):
        return jsonify(error="IOFailure", description=f"upload exceeds {config.server.max_upload_mb} MB"), 413

    @app.get("/formats")
    def formats():
        return jsonify(engine.supported_formats())

    @app.post("/upload/<output_format>")
    def upload(output_format: str):
        target = DocumentFormat.from_name(output_format)
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            raise MalformedInput("missing multipart 'file' part")

        data = upload.read()
        stem, ext = _split_name(upload.filename)
        images = ImageBundle()
        if ext == "zip":
            name, data, images = _unpack_zip(data)
            stem, ext = _split_name(name)
        if ext not in UPLOAD_EXTENSIONS:
            raise UnknownFormat(f"unsupported upload extension: .{ext}" if ext else "upload has no file extension")

        warnings = ConversionWarnings()
        output, output_images = engine.convert(
            data,
            DocumentFormat.from_name(ext),
            target,
            loader=BundleImageLoader(images),
            images=images,
            warnings=warnings,
        )
        filename = f"{stem}.{output_format}"
        logger.info("Converted upload %s -> %s (%d images)", upload.filename, filename, len(output_images))

        if request.args.get("bundle") == "zip":
            return _attachment(_pack_zip(filename, output, output_images), f"{stem}.zip", "application/zip", warnings)
        for key in output_images:
            warnings.add("Image", f"{key} is not part of the response; request ?bundle=zip to receive images")
        return _attachment(output, filename, target.mime_type, warnings)

    return app


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        prog="docshift-server",
        description="Docshift HTTP upload server",
    )
    parser.add_argument("--host", default=None, help="Bind address (default: from config)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: from config)")
    parser.add_argument("--config", default=None, help="YAML configuration file (default: $DOCSHIFT_CONFIG)")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config.logging.level, config.logging.format)
    app = create_app(config)
    app.run(host=args.host or config.server.host, port=args.port or config.server.port)


if __name__ == "__main__":
    main()
