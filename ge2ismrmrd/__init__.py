__version__ = "0.1.0"

# Import core functionalities
from .config import load_configuration, parse_configuration, ConversionConfiguration, SequenceMapping
from .converter import GERawConverter
from .converters import resolve, GenericConverter, NIH2dfastConverter, NIHepiConverter
from .errors import (
    ConversionError, ConfigurationError, UnknownConverterError, RawLoadError, ParameterLookupError,
    HeaderGenerationError, StylesheetNotConfiguredError, TransformError, UnsupportedCombinationError,
)
from .header import build_header, header_to_string
from .io import write_dataset
from .raw import RawContainerKind, RawSource, ProcessingParameters, SliceInfoTable, classify, load_raw_source
from .transform import render, TransformEngine
