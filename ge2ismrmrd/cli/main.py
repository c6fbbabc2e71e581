"""
Command-line entry point: convert a GE raw file to an ISMRMRD dataset.
"""

import argparse
import logging
import sys

from tabulate import tabulate

from ge2ismrmrd.config import DEFAULT_DATASET_GROUP, DEFAULT_PSDNAME, load_configuration
from ge2ismrmrd.converter import GERawConverter
from ge2ismrmrd.errors import ConversionError, UnknownConverterError
from ge2ismrmrd.io import write_dataset
from ge2ismrmrd.raw import load_raw_source
from ge2ismrmrd.stylesheets import get_default_configuration_path

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Convert GE ScanArchive or P-file raw data to ISMRMRD.")
    parser.add_argument("input", nargs="?", help="Path to the ScanArchive (.h5) or P-file.")
    parser.add_argument("-o", "--output", default="testdata.h5", help="Output ISMRMRD HDF5 file.")
    parser.add_argument("-g", "--group", default=DEFAULT_DATASET_GROUP, help="Dataset group in the output file.")
    parser.add_argument("-c", "--config", default=str(get_default_configuration_path()),
                        help="Conversion configuration XML.")
    parser.add_argument("-p", "--psdname", default=DEFAULT_PSDNAME,
                        help="Pulse sequence name used to select the configuration mapping.")
    parser.add_argument("-b", "--backend", help="Python module defining RAW_SOURCE, the GE raw data reader.")
    parser.add_argument("-x", "--stylesheet", help="Override the stylesheet from the configuration.")
    parser.add_argument("--header-only", action="store_true", help="Print the ISMRMRD header and exit.")
    parser.add_argument("--list-mappings", action="store_true", help="List the configured sequence mappings.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress messages.")
    return parser


def list_mappings(configuration) -> None:
    rows = [[m.psdname, m.className, m.stylesheet, m.reconConfigName] for m in configuration.mappings]
    print(tabulate(rows, headers=["PSD", "Converter", "Stylesheet", "Recon config"], tablefmt="simple"))


def convert_command(args) -> int:
    configuration = load_configuration(args.config)
    if args.list_mappings:
        list_mappings(configuration)
        return 0

    if not args.input:
        logger.error("No input file given.")
        return 2
    if not args.backend:
        logger.error("A raw data backend module is required (--backend).")
        return 2

    mapping = configuration.find_mapping(args.psdname)
    logger.info(f"PSD '{args.psdname}' uses {mapping.className} with {mapping.stylesheet}")

    raw_source = load_raw_source(args.backend)
    converter = GERawConverter.from_mapping(args.input, mapping, raw_source,
                                            logging_enabled=args.verbose,
                                            base_dir=configuration.base_dir,
                                            stylesheet=args.stylesheet)

    if args.header_only:
        print(converter.get_ismrmrd_xml_header())
        return 0

    write_dataset(converter, args.output, args.group)
    logger.info(f"Recon config: {converter.get_recon_config_name()}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    try:
        return convert_command(args)
    except UnknownConverterError as e:
        print(f"{e.message} Exiting...", file=sys.stderr)
        return 1
    except (ConversionError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
