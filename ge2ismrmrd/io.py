"""
Writing converted data to ISMRMRD HDF5 datasets.
"""

import logging
from typing import Optional

import ismrmrd

from .config import DEFAULT_DATASET_GROUP

logger = logging.getLogger(__name__)


def write_dataset(converter, output_path: str, group: str = DEFAULT_DATASET_GROUP,
                  num_views: Optional[int] = None) -> int:
    """
    Write the ISMRMRD header and every view's acquisitions to a dataset.

    Args:
        converter (GERawConverter): A converter with its stylesheet configured.
        output_path (str): Path of the ISMRMRD HDF5 file to write.
        group (str): Dataset group inside the file.
        num_views (Optional[int]): Number of views to convert; defaults to all.

    Returns:
        int: Number of acquisitions written.
    """
    header = converter.get_ismrmrd_xml_header()
    if num_views is None:
        num_views = converter.num_views

    dset = ismrmrd.Dataset(output_path, group, create_if_needed=True)
    written = 0
    try:
        dset.write_xml_header(header.encode("utf-8") if isinstance(header, str) else header)
        for view_num in range(num_views):
            for acq in converter.get_acquisitions(view_num):
                dset.append_acquisition(acq)
                written += 1
    finally:
        dset.close()

    logger.info(f"Wrote {written} acquisitions from {num_views} views to {output_path}/{group}")
    return written
