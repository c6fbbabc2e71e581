"""
Sequence converters: per-family extraction of ISMRMRD acquisitions.

A converter offers one method per raw container kind, since ScanArchive and
P-file handles are not interchangeable. The set of converters is closed;
``resolve`` maps a configuration class name onto one of them.
"""

import logging
from typing import Dict, Iterable, List, Type

import ismrmrd
import numpy as np

from .config import GENERIC_CONVERTER, NIH_2DFAST_CONVERTER, NIH_EPI_CONVERTER
from .errors import UnknownConverterError
from .raw import ArchiveFrame, LoadedRaw, PfileHandle, ScanArchiveHandle

logger = logging.getLogger(__name__)


def make_acquisition(data: np.ndarray, view_num: int, slice_index: int = 0,
                     echo_index: int = 0, encode_step: int = None) -> ismrmrd.Acquisition:
    """
    Wrap one readout of k-space in an ISMRMRD acquisition.

    Args:
        data (np.ndarray): Complex samples shaped (channels, samples).
        view_num (int): View the readout belongs to.
        slice_index (int): Slice index.
        echo_index (int): Echo (contrast) index.
        encode_step (int): Phase encode step; defaults to ``view_num``.

    Returns:
        ismrmrd.Acquisition: The populated acquisition.
    """
    data = np.atleast_2d(np.asarray(data, dtype=np.complex64))
    channels, samples = data.shape

    head = ismrmrd.AcquisitionHeader()
    head.version = 1
    head.number_of_samples = samples
    head.active_channels = channels
    head.available_channels = channels
    head.center_sample = samples // 2
    head.scan_counter = view_num
    head.idx.kspace_encode_step_1 = view_num if encode_step is None else encode_step
    head.idx.slice = slice_index
    head.idx.contrast = echo_index

    acq = ismrmrd.Acquisition()
    acq.setHead(head)
    acq.resize(samples, channels)
    acq.data[:] = data
    return acq


class SequenceConverter:
    """Base class for sequence-family converters."""

    name = None

    def configure(self, loaded: LoadedRaw) -> None:
        """Read whatever the converter needs from the loaded raw data."""

    def get_acquisitions_from_pfile(self, pfile: PfileHandle, view_num: int) -> List[ismrmrd.Acquisition]:
        raise NotImplementedError

    def get_acquisitions_from_archive(self, archive: ScanArchiveHandle, view_num: int) -> List[ismrmrd.Acquisition]:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class GenericConverter(SequenceConverter):
    """Cartesian readouts: one acquisition per slice and echo of a view."""

    name = GENERIC_CONVERTER

    def encode_step(self, view_num: int) -> int:
        return view_num

    def get_acquisitions_from_pfile(self, pfile, view_num):
        acquisitions = []
        last_slice = pfile.slice_count - 1
        last_echo = pfile.echo_count - 1
        for slice_index in range(pfile.slice_count):
            for echo_index in range(pfile.echo_count):
                data = pfile.kspace_data(view_num, slice_index, echo_index)
                acq = make_acquisition(data, view_num, slice_index, echo_index,
                                       self.encode_step(view_num))
                if view_num == 0:
                    acq.setFlag(ismrmrd.ACQ_FIRST_IN_SLICE)
                if view_num == pfile.view_count - 1:
                    acq.setFlag(ismrmrd.ACQ_LAST_IN_SLICE)
                    if slice_index == last_slice and echo_index == last_echo:
                        acq.setFlag(ismrmrd.ACQ_LAST_IN_MEASUREMENT)
                acquisitions.append(acq)
        return acquisitions

    def get_acquisitions_from_archive(self, archive, view_num):
        frames = archive.archive_storage().frames(view_num)
        return [self.frame_acquisition(frame, view_num) for frame in frames]

    def frame_acquisition(self, frame: ArchiveFrame, view_num: int) -> ismrmrd.Acquisition:
        return make_acquisition(frame.data, view_num, frame.slice_index, frame.echo_index,
                                frame.encode_step)


class NIH2dfastConverter(GenericConverter):
    """
    2D fast gradient echo. P-file view 0 holds the baseline, so encode steps
    start at view 1; the baseline view yields no acquisitions.
    """

    name = NIH_2DFAST_CONVERTER

    def encode_step(self, view_num: int) -> int:
        return view_num - 1

    def get_acquisitions_from_pfile(self, pfile, view_num):
        if view_num == 0:
            logger.debug("Skipping baseline view 0")
            return []
        return super().get_acquisitions_from_pfile(pfile, view_num)


class NIHepiConverter(GenericConverter):
    """
    Echo-planar imaging. Frames read from a ScanArchive carry reference views
    for phase correction ahead of the imaging echoes, and alternate echoes are
    read out in reverse.
    """

    name = NIH_EPI_CONVERTER

    def __init__(self, ref_views: int = 0):
        self.ref_views = ref_views

    def configure(self, loaded):
        if not loaded.metadata.is_epi():
            return
        epi = loaded.metadata.epi_processing_parameters()
        self.ref_views = epi.value("ExtraFramesTop", int) + epi.value("ExtraFramesBottom", int)
        logger.debug(f"EPI reference views: {self.ref_views}")

    def frame_acquisition(self, frame, view_num):
        acq = super().frame_acquisition(frame, view_num)
        if frame.encode_step < self.ref_views:
            acq.setFlag(ismrmrd.ACQ_IS_PHASECORR_DATA)
        if frame.encode_step % 2 == 1:
            acq.setFlag(ismrmrd.ACQ_IS_REVERSE)
        return acq


CONVERTERS: Dict[str, Type[SequenceConverter]] = {
    GenericConverter.name: GenericConverter,
    NIH2dfastConverter.name: NIH2dfastConverter,
    NIHepiConverter.name: NIHepiConverter,
}


def resolve(class_name: str) -> SequenceConverter:
    """
    Instantiate the converter registered under a configuration class name.

    Raises:
        UnknownConverterError: If the name is not one of the known converters.
    """
    try:
        converter_class = CONVERTERS[class_name]
    except KeyError:
        raise UnknownConverterError(class_name) from None
    return converter_class()


def available_converters() -> Iterable[str]:
    return sorted(CONVERTERS)
