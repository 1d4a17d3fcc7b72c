#!/usr/bin/env python3
"""
archikit CLI

Usage:
    archikit export model.archimate out/ --prefix my- --delimiter Semicolon
    archikit import model.archimate out/my-elements.csv
    archikit add-image model.archimate logo.png
    archikit convert legacy.archimate
"""

import argparse
import logging
import sys
from pathlib import Path

from .archimate import ArchimateModel, DiagramModelImage
from .archimate.model import new_id
from .archive import ArchiveManager, load_model
from .config import CSV_FORMAT, PreferenceStore, load_settings
from .config import preferences as prefs
from .csvio import CSVExporter, CSVImporter, ExportSettings
from .exceptions import ArchiveError, CSVParseError, ModelResourceError, log_exception

logger = logging.getLogger("archikit.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="archikit", description="ArchiMate model CSV and archive tools")
    parser.add_argument("--env-file", help="Environment file to load (defaults to .env)")
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Export a model to CSV files")
    export.add_argument("model", help="Model file")
    export.add_argument("folder", nargs="?", help="Output folder (defaults to the last one used)")
    export.add_argument("--prefix", default="", help="File name prefix")
    export.add_argument("--delimiter", choices=CSV_FORMAT.DELIMITER_NAMES, help="Field delimiter")
    export.add_argument("--encoding", choices=CSV_FORMAT.ENCODINGS, help="Output encoding")
    export.add_argument("--header", action=argparse.BooleanOptionalAction, default=None,
                        help="Write a header row")
    export.add_argument("--strip-newlines", action=argparse.BooleanOptionalAction, default=None,
                        help="Replace line breaks in names and documentation with spaces")
    export.add_argument("--leading-chars-hack", action=argparse.BooleanOptionalAction, default=None,
                        help="Protect leading zeros and spaces for spreadsheet tools")
    export.add_argument("--force", action="store_true", help="Overwrite existing files")

    imp = sub.add_parser("import", help="Import CSV files into a model and save it")
    imp.add_argument("model", help="Model file (created if missing)")
    imp.add_argument("elements", help="The <prefix>elements.csv file")
    imp.add_argument("--delimiter", choices=CSV_FORMAT.DELIMITER_NAMES,
                     help="Field delimiter (auto-detected when omitted)")
    imp.add_argument("--encoding", choices=CSV_FORMAT.ENCODINGS, help="Input encoding")

    add_image = sub.add_parser("add-image", help="Store an image in a model and show it on the default view")
    add_image.add_argument("model", help="Model file")
    add_image.add_argument("image", help="Image file")

    convert = sub.add_parser("convert", help="Convert a legacy zip archive model to a single XML file")
    convert.add_argument("model", help="Legacy model file")
    convert.add_argument("--output", help="Output file (defaults to overwriting the input)")

    return parser


def _open_model(path: str, create: bool = False):
    if create and not Path(path).exists():
        model = ArchimateModel(name=Path(path).stem)
        model.set_defaults()
        model.file = path
        logger.info(f"Created new model '{model.name}'")
        return model
    return load_model(path)


def _export(args, settings) -> int:
    store = PreferenceStore(settings.preferences_file)
    model = _open_model(args.model)

    delimiter_index = store.get_int(prefs.CSV_EXPORT_PREFS_SEPARATOR)
    if args.delimiter:
        delimiter_index = CSV_FORMAT.DELIMITER_NAMES.index(args.delimiter)

    export_settings = ExportSettings(
        folder=args.folder or store.get_string(prefs.CSV_EXPORT_PREFS_LAST_FILE) or str(Path.cwd()),
        file_prefix=args.prefix,
        delimiter_index=delimiter_index,
        encoding=args.encoding or store.get_string(prefs.CSV_EXPORT_PREFS_ENCODING) or settings.csv_encoding,
        strip_newlines=_choose(args.strip_newlines, store.get_bool(prefs.CSV_EXPORT_PREFS_STRIP_NEW_LINES)),
        use_leading_chars_hack=_choose(args.leading_chars_hack,
                                       store.get_bool(prefs.CSV_EXPORT_PREFS_LEADING_CHARS_HACK)),
        write_header=_choose(args.header, store.get_bool(prefs.CSV_EXPORT_PREFS_WRITE_HEADER)),
    )

    error = export_settings.validate()
    if error:
        print(f"❌ {error}", file=sys.stderr)
        return 1

    exporter = CSVExporter(model, export_settings)
    existing = [p for p in exporter.output_files() if p.exists()]
    if existing and not args.force:
        print(f"❌ Files already exist (use --force to overwrite): {', '.join(map(str, existing))}",
              file=sys.stderr)
        return 1

    store.set_value(prefs.CSV_EXPORT_PREFS_LAST_FILE, str(Path(export_settings.folder)))
    store.set_value(prefs.CSV_EXPORT_PREFS_SEPARATOR, export_settings.delimiter_index)
    store.set_value(prefs.CSV_EXPORT_PREFS_STRIP_NEW_LINES, export_settings.strip_newlines)
    store.set_value(prefs.CSV_EXPORT_PREFS_LEADING_CHARS_HACK, export_settings.use_leading_chars_hack)
    store.set_value(prefs.CSV_EXPORT_PREFS_ENCODING, export_settings.encoding)
    store.set_value(prefs.CSV_EXPORT_PREFS_WRITE_HEADER, export_settings.write_header)
    store.save()

    for path in exporter.export():
        print(f"✅ Wrote {path}")
    return 0


def _choose(flag, stored: bool) -> bool:
    return stored if flag is None else flag


def _import(args, settings) -> int:
    model = _open_model(args.model, create=True)
    delimiter = CSV_FORMAT.delimiter_for_name(args.delimiter) if args.delimiter else None
    importer = CSVImporter(model, delimiter=delimiter, encoding=args.encoding or settings.csv_encoding)
    session = importer.do_import(args.elements)
    ArchiveManager(model).save_model()

    print(f"✅ Imported into {args.model}")
    print(f"   New concepts: {len(session.new_concepts)}")
    print(f"   Updated concepts: {len(session.updated_concepts)}")
    print(f"   New properties: {len(session.new_properties)}")
    print(f"   Updated properties: {len(session.updated_properties)}")
    return 0


def _add_image(args, settings) -> int:
    model = _open_model(args.model)
    manager = ArchiveManager(model)
    image_path = manager.add_image_from_file(args.image)

    diagram = model.default_diagram_model()
    if diagram is None:
        model.set_defaults()
        diagram = model.default_diagram_model()
    if not any(obj.image_path == image_path for obj in diagram.iter_objects()):
        diagram.children.append(DiagramModelImage(id=new_id(), name=Path(args.image).name, image_path=image_path))

    manager.save_model()
    print(f"✅ Stored {args.image} as {image_path}")
    return 0


def _convert(args, settings) -> int:
    model = _open_model(args.model)
    if args.output:
        model.file = args.output
    ArchiveManager(model).save_model()
    print(f"✅ Saved {model.file} with {len(model.features)} features")
    return 0


COMMANDS = {
    "export": _export,
    "import": _import,
    "add-image": _add_image,
    "convert": _convert,
}


def main(argv=None) -> int:
    args = _build_parser().parse_args(argv)
    settings = load_settings(args.env_file)
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        return COMMANDS[args.command](args, settings)
    except (CSVParseError, ModelResourceError, ArchiveError, FileNotFoundError) as e:
        log_exception(e, logger, {"command": args.command})
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
