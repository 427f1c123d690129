import os, numpy as np

from datetime import datetime
from dateutil.tz import tzlocal

from IntanErrors import FileSizeError

# RHS files always store 128 samples per data block
SAMPLES_PER_DATA_BLOCK = 128

# Every signal kind that can appear in an RHS data block, in the order it is stored within each block.
# 'channels' names the header list whose length sets the channel count, 'shared_word' marks kinds whose
# channels are packed as bits of one 16-bit word per sample, and 'requires' names a header flag that
# must be set for the kind to be saved at all.
SIGNAL_KINDS = (
    {'name': 'amplifier', 'channels': 'amplifier_channels', 'shared_word': False, 'requires': None},
    {'name': 'dc_amplifier', 'channels': 'amplifier_channels', 'shared_word': False, 'requires': 'dc_amplifier_data_saved'},
    {'name': 'stim', 'channels': 'amplifier_channels', 'shared_word': False, 'requires': None},
    {'name': 'board_adc', 'channels': 'board_adc_channels', 'shared_word': False, 'requires': None},
    {'name': 'board_dac', 'channels': 'board_dac_channels', 'shared_word': False, 'requires': None},
    {'name': 'board_dig_in', 'channels': 'board_dig_in_channels', 'shared_word': True, 'requires': None},
    {'name': 'board_dig_out', 'channels': 'board_dig_out_channels', 'shared_word': True, 'requires': None},
)

def num_channels_of_kind(header, kind):
    """ Return how many channels of this signal kind are saved, 0 if the kind is absent from the file. """
    if kind['requires'] is not None and not header[kind['requires']]:
        return 0
    return len(header[kind['channels']])

def num_words_per_sample(header, kind):
    """ Return how many 16-bit words this signal kind occupies for each sample of a data block.

    Parameters
    ----------
    header : dict
        Dict containing previously read header information
    kind : dict
        Entry of SIGNAL_KINDS describing the signal kind

    Returns
    -------
    int
        One word per channel for analog kinds, a single shared word for digital kinds with any
        enabled channel, or 0 if the kind is absent.
    """
    num_channels = num_channels_of_kind(header, kind)
    if kind['shared_word']:
        return 1 if num_channels > 0 else 0
    return num_channels

def present_signal_kinds(header):
    """ Return the SIGNAL_KINDS entries that occupy space in this file's data blocks, in block order. """
    return [kind for kind in SIGNAL_KINDS if num_words_per_sample(header, kind) > 0]

def preallocate_data(header, num_samples):
    """ Preallocate raw data arrays for every signal kind present in the file

    Parameters
    ----------
    header : dict
        Dict containing previously read header information
    num_samples : int
        How many samples (per channel) are in the whole file

    Returns
    -------
    data : dict
        Dict containing 'timestamps' plus one '<kind>_raw' numpy array per present signal kind.
        Kinds with no channels get no entry.
    """
    data = {}
    data['timestamps'] = np.zeros(num_samples, dtype=np.int32)

    for kind in present_signal_kinds(header):
        # Digital kinds keep the shared word per sample; individual channels are extracted later
        if kind['shared_word']:
            data[kind['name'] + '_raw'] = np.zeros(num_samples, dtype=np.int32)
        else:
            num_channels = num_channels_of_kind(header, kind)
            data[kind['name'] + '_raw'] = np.zeros([num_channels, num_samples], dtype=np.int32)

    return data

def get_data_size(header, bytes_per_block, print_summary=True):
    """ Consult the header to determine how many data blocks follow it in the file.

    Parameters
    ----------
    header : dict
        Dict containing previously read header information, including 'size' (header length in bytes)
        and 'total_file_size'
    bytes_per_block : int
        Size (in bytes) of each data block in the file
    print_summary : bool
        Whether the amount of recorded time should be printed

    Returns
    -------
    data_present : bool
        Whether any data blocks follow the header
    num_data_blocks : int
        How many data blocks can be read from the file
    num_samples : int
        How many samples (per channel) those blocks contain
    """
    bytes_remaining = header['total_file_size'] - header['size']
    data_present = bytes_remaining > 0

    # Report if the bytes remaining is not an integer multiple of bytes per block
    if bytes_remaining % bytes_per_block != 0:
        raise FileSizeError('Something is wrong with file size : should have a whole number of data blocks '
                            '({} bytes remaining, {} bytes per block)'.format(bytes_remaining, bytes_per_block))

    num_data_blocks = bytes_remaining // bytes_per_block
    num_samples = num_data_blocks * SAMPLES_PER_DATA_BLOCK

    if print_summary:
        record_time = num_samples / header['sample_rate'] if header['sample_rate'] else 0.0
        if data_present:
            print('File contains {:0.3f} seconds of data.  Amplifiers were sampled at {:0.2f} kS/s.'.format(record_time, header['sample_rate'] / 1000))
        else:
            print('Header file contains no data.  Amplifiers were sampled at {:0.2f} kS/s.'.format(header['sample_rate'] / 1000))

    return data_present, num_data_blocks, num_samples

def get_rhs_files(directory):
    """ Return a sorted list of paths to every .rhs file (extension matched case-insensitively) in a directory """
    return sorted(os.path.join(directory, filename)
                  for filename in os.listdir(directory)
                  if filename.lower().endswith('.rhs') and os.path.isfile(os.path.join(directory, filename)))

def parse_filename(in_filename):
    """ Parse input filename to determine output filename and session start time.
    If input filename contains a date timestamp, that will be used for session start time

    Parameters
    ----------
    in_filename : str
        Full name of the .rhs file (or directory of .rhs files) that is being read

    Returns
    -------
    out_filename : str
        Full name of .nwb file that is being written
    session_start_time : datetime.datetime
        Time that recording session began at. If this information can't be determined from the input filename,
        default to January 1st, 1970 midnight.
    """
    base_filename = in_filename.rstrip(os.sep)
    if base_filename.lower().endswith('.rhs'):
        base_filename = base_filename[:-4]
    out_filename = base_filename + '.nwb'

    # Intan software names files 'myfilename_YYMMDD_HHMMSS' by default; parse that suffix if it's there
    name = os.path.basename(base_filename)
    session_start_time = datetime(1970, 1, 1, tzinfo=tzlocal())

    if len(name) >= 14 and name[-14] == '_' and name[-7] == '_':
        try:
            session_start_time = datetime(int(name[-13:-11]) + 2000,
                                          int(name[-11:-9]),
                                          int(name[-9:-7]),
                                          int(name[-6:-4]),
                                          int(name[-4:-2]),
                                          int(name[-2:]),
                                          tzinfo=tzlocal())
        except ValueError:
            pass

    return out_filename, session_start_time
