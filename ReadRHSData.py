import numpy as np

from SetupResources import (SAMPLES_PER_DATA_BLOCK, present_signal_kinds,
                            num_channels_of_kind, preallocate_data)
from IntanErrors import FileSizeError

# Print progress each time another 10% of the blocks has been read
PRINT_PROGRESS_STEP = 10

def read_words(fid, dtype, count):
    """ Read exactly count little-endian items of dtype from fid, raising FileSizeError if the stream ends early. """
    num_bytes = np.dtype(dtype).itemsize * count
    buffer = fid.read(num_bytes)
    if len(buffer) != num_bytes:
        raise FileSizeError('Unexpected end of file: wanted {} bytes, got {}'.format(num_bytes, len(buffer)))
    return np.frombuffer(buffer, dtype=dtype)

def read_into_1D(destination, offset, fid, dtype, num_samples):
    """ Read from file into 1D destination array.

    Parameters
    ----------
    destination : numpy.ndarray
        1D array to write to
    offset : int
        Index of the destination array to start writing to
    fid : _io.BufferedReader or io.BytesIO
        Binary stream of a file to read from
    dtype : str
        Little-endian data type to read data as (for example, '<i4')
    num_samples : int
        Number of samples to read

    Returns
    -------
    None
    """
    destination[offset:offset + num_samples] = read_words(fid, dtype, num_samples)

def read_into_2D(destination, offset, fid, dtype, num_channels, num_samples):
    """ Read from file into 2D destination array.

    Values in the file are interleaved by sample: all channels' values for sample 0, then all
    channels' values for sample 1, and so on. They are de-interleaved here into [channel, sample].

    Parameters
    ----------
    destination : numpy.ndarray
        2D array to write to
    offset : int
        Sample index of the destination array to start writing to
    fid : _io.BufferedReader or io.BytesIO
        Binary stream of a file to read from
    dtype : str
        Little-endian data type to read data as (for example, '<i2')
    num_channels : int
        Number of channels (rows) to write to
    num_samples : int
        Number of samples per channel (columns) to write to

    Returns
    -------
    None
    """
    tmp = read_words(fid, dtype, num_channels * num_samples)
    destination[:, offset:offset + num_samples] = tmp.reshape(num_samples, num_channels).T

def read_timestamp_block(data, index, fid):
    """ Populate data['timestamps'] with a block of 32-bit signed timestamps. """
    read_into_1D(destination=data['timestamps'],
                 offset=index,
                 fid=fid,
                 dtype='<i4',
                 num_samples=SAMPLES_PER_DATA_BLOCK)

def read_signal_block(header, kind, data, index, fid):
    """ Populate data['<kind>_raw'] with one block of 16-bit words for a single signal kind.

    Parameters
    ----------
    header : dict
        Dict containing previously read header information
    kind : dict
        Entry of SetupResources.SIGNAL_KINDS describing the signal kind being read
    data : dict
        Dict containing preallocated raw arrays to write data to
    index : int
        Sample index at which this block starts
    fid : _io.BufferedReader or io.BytesIO
        Binary stream of a file to read from

    Returns
    -------
    None
    """
    destination = data[kind['name'] + '_raw']

    # Digital lines are packed as bits of one unsigned word per sample; channels are extracted later
    if kind['shared_word']:
        read_into_1D(destination=destination,
                     offset=index,
                     fid=fid,
                     dtype='<u2',
                     num_samples=SAMPLES_PER_DATA_BLOCK)

    else:
        read_into_2D(destination=destination,
                     offset=index,
                     fid=fid,
                     dtype='<i2',
                     num_channels=num_channels_of_kind(header, kind),
                     num_samples=SAMPLES_PER_DATA_BLOCK)

def read_one_data_block(header, data, index, fid):
    """ Read one 128 sample data block: timestamps, then each present signal kind in block order.

    Parameters
    ----------
    header : dict
        Dict containing previously read header information
    data : dict
        Dict containing preallocated raw arrays to write data to
    index : int
        Sample index at which this block starts
    fid : _io.BufferedReader or io.BytesIO
        Binary stream of a file to read from

    Returns
    -------
    None
    """
    read_timestamp_block(data, index, fid)

    for kind in present_signal_kinds(header):
        read_signal_block(header, kind, data, index, fid)

def read_all_data_blocks(header, num_samples, num_data_blocks, fid, print_status=True):
    """ Read every data block of a file into preallocated raw arrays.

    Parameters
    ----------
    header : dict
        Dict containing previously read header information
    num_samples : int
        Total number of samples (per channel) in the file
    num_data_blocks : int
        Total number of data blocks in the file
    fid : _io.BufferedReader or io.BytesIO
        Binary stream positioned at the first data block
    print_status : bool
        Whether reading progress should be printed

    Returns
    -------
    data : dict
        Dict containing 'timestamps' and a '<kind>_raw' array for every present signal kind
    """
    if print_status:
        print('Reading data from file...')

    data = preallocate_data(header, num_samples)

    percent_done = PRINT_PROGRESS_STEP
    for block in range(num_data_blocks):
        read_one_data_block(header, data, block * SAMPLES_PER_DATA_BLOCK, fid)

        if print_status:
            fraction_done = 100 * (block + 1) / num_data_blocks
            while fraction_done >= percent_done and percent_done <= 100:
                print('{}% done...'.format(percent_done))
                percent_done += PRINT_PROGRESS_STEP

    return data

def check_end_of_file(filesize, fid):
    """ Make sure we have read exactly the right amount of data. """
    bytes_remaining = filesize - fid.tell()
    if bytes_remaining != 0:
        raise FileSizeError('Error: End of file not reached. {} bytes remaining'.format(bytes_remaining))
