"""Module to load and combine Intan RHS data files.
"""

import os.path
import struct
import sys
import time

import numpy as np

from IntanErrors import IntanError, FileSizeError, ChannelNotFoundError

from ReadRHSHeader import (read_header, get_bytes_per_data_block,
                           get_stream_size, verify_header_compatibility)

from SetupResources import get_data_size, get_rhs_files

from ReadRHSData import read_all_data_blocks, check_end_of_file

from ProcessData import process_data

# Keys of data arrays that share the sample axis and are concatenated when files are combined
SAMPLE_AXIS_KEYS = ('timestamps', 't')
CHANNEL_DATA_KEYS = ('amplifier_data', 'dc_amplifier_data', 'stim_data',
                     'compliance_limit_data', 'charge_recovery_data', 'amp_settle_data',
                     'board_adc_data', 'board_dac_data',
                     'board_dig_in_data', 'board_dig_out_data')


class Recording:
    """Decoded contents of one or more RHS files.

    Attributes
    ----------
    header : dict
        Dict containing read header information (of the first file, when combined)
    data : dict or None
        Dict of decoded arrays keyed by signal, None if the file held no data blocks.
        Signal kinds without channels have no entry.
    data_present : bool
        Whether any data blocks were read
    source_files : list or None
        Paths of every file that contributed, only set when several files were combined
    """
    def __init__(self, header, data=None, data_present=False, source_files=None):
        self.header = header
        self.data = data
        self.data_present = data_present
        self.source_files = source_files

    def num_samples(self):
        """ Number of samples (per channel) held, 0 if no data. """
        if self.data is None:
            return 0
        return len(self.data['timestamps'])

    def duration(self):
        """ Recorded time in seconds, 0 if no data or no sample rate. """
        if self.data is None or not self.header['sample_rate']:
            return 0.0
        return self.num_samples() / self.header['sample_rate']

    def get_channel_data(self, channel_name):
        """ Return the scaled amplifier data (microvolts) of the channel with this native or custom name.

        Parameters
        ----------
        channel_name : str
            Native (for example, 'A-000') or custom name of an amplifier channel

        Returns
        -------
        numpy.ndarray
            1D array of this channel's samples
        """
        for idx, channel in enumerate(self.header['amplifier_channels']):
            if channel_name in (channel['native_channel_name'], channel['custom_channel_name']):
                if self.data is None or 'amplifier_data' not in self.data:
                    break
                return self.data['amplifier_data'][idx]
        raise ChannelNotFoundError('No amplifier data for channel: {}'.format(channel_name))


def load_stream(fid, filesize=None, apply_notch=True, print_status=True):
    """ Decode an RHS file from an open binary stream.

    Parameters
    ----------
    fid : _io.BufferedReader or io.BytesIO
        Seekable binary stream positioned at the start of the file
    filesize : int or None
        Total size of the stream in bytes. If None, it is measured from the stream.
    apply_notch : bool
        Whether the notch filter selected in the header may be applied to amplifier data
    print_status : bool
        Whether progress and summaries should be printed

    Returns
    -------
    Recording
        Header and (if any data blocks are present) decoded data
    """
    if filesize is None:
        filesize = get_stream_size(fid)

    try:
        header = read_header(fid, print_status)
    except struct.error as err:
        raise FileSizeError('File ended before header was complete') from err
    header['total_file_size'] = filesize
    header['data_present'] = (filesize - header['size']) > 0

    # Calculate how much data is present
    bytes_per_block = get_bytes_per_data_block(header)
    data_present, num_data_blocks, num_samples = get_data_size(header, bytes_per_block, print_status)

    data = None
    if data_present:
        raw_data = read_all_data_blocks(header, num_samples, num_data_blocks, fid, print_status)
        check_end_of_file(filesize, fid)
        data = process_data(header, raw_data, apply_notch, print_status)

    return Recording(header, data, data_present)


def load_file(filename, apply_notch=True, print_status=True):
    """ Load a single RHS file.

    Parameters
    ----------
    filename : str
        Name of the .rhs file to load
    apply_notch : bool
        Whether the notch filter selected in the header may be applied to amplifier data
    print_status : bool
        Whether progress and summaries should be printed

    Returns
    -------
    Recording
        Header and (if any data blocks are present) decoded data
    """
    # Start timing.
    tic = time.time()

    filesize = os.path.getsize(filename)
    with open(filename, 'rb') as fid:
        recording = load_stream(fid, filesize, apply_notch, print_status)
    recording.header['filename'] = filename

    if print_status:
        print('Done! Elapsed time: {:0.1f} seconds'.format(time.time() - tic))

    return recording


def load_and_combine_files(filenames, apply_notch=True, print_status=True):
    """ Load several sequential RHS files of one session and combine them along the time axis.

    Files are combined in the order given. Every file's header must be compatible with the first
    (see ReadRHSHeader.verify_header_compatibility); any failure aborts the whole combination.

    Parameters
    ----------
    filenames : list
        Paths of .rhs files, already sorted into recording order
    apply_notch : bool
        Whether the notch filter selected in the header may be applied to amplifier data
    print_status : bool
        Whether progress and summaries should be printed

    Returns
    -------
    Recording
        Combined recording. source_files lists every path when more than one file was given.
    """
    if len(filenames) == 0:
        raise IntanError('No files to load')

    if print_status:
        print('\nLoading file 1/{}: {}'.format(len(filenames), filenames[0]))
    combined = load_file(filenames[0], apply_notch, print_status)

    if len(filenames) == 1:
        return combined

    combined.source_files = [filenames[0]]

    for i, filename in enumerate(filenames[1:]):
        if print_status:
            print('\nLoading file {}/{}: {}'.format(i + 2, len(filenames), filename))
        next_recording = load_file(filename, apply_notch, print_status)

        verify_header_compatibility(combined.header, next_recording.header)

        if combined.data_present and next_recording.data_present:
            combine_data(combined, next_recording)

        combined.source_files.append(filename)

    if print_status:
        print('\nSuccessfully combined {} files'.format(len(filenames)))
        print('Total duration: {:0.2f} seconds'.format(combined.duration()))

    return combined


def combine_data(combined, next_recording):
    """ Append every array of next_recording to combined along the sample axis.

    Timestamps are concatenated without adjustment; files from one session already carry
    consecutive timestamps. Signals absent from either recording are left out of the result.

    Parameters
    ----------
    combined : Recording
        Running combined recording, modified in place
    next_recording : Recording
        Recording whose data is appended

    Returns
    -------
    None
    """
    combined_data = combined.data
    next_data = next_recording.data

    for key in SAMPLE_AXIS_KEYS:
        combined_data[key] = np.concatenate([combined_data[key], next_data[key]])

    for key in CHANNEL_DATA_KEYS:
        if key in combined_data and key in next_data:
            combined_data[key] = np.concatenate([combined_data[key], next_data[key]], axis=1)
        else:
            combined_data.pop(key, None)


def load(path, apply_notch=True, print_status=True):
    """ Load an RHS file, or every RHS file in a directory combined into one recording.

    Parameters
    ----------
    path : str
        Either an .rhs file, or a directory whose .rhs files (matched case-insensitively)
        are sorted by name and combined
    apply_notch : bool
        Whether the notch filter selected in the header may be applied to amplifier data
    print_status : bool
        Whether progress and summaries should be printed

    Returns
    -------
    Recording
        Loaded (and possibly combined) recording
    """
    if os.path.isfile(path):
        return load_file(path, apply_notch, print_status)

    if os.path.isdir(path):
        filenames = get_rhs_files(path)
        if not filenames:
            raise IntanError('No .rhs files found in directory: {}'.format(path))
        if print_status:
            print('Found {} .rhs files in directory {}'.format(len(filenames), path))
        return load_and_combine_files(filenames, apply_notch, print_status)

    raise IntanError('Path does not exist or is not a file or directory: {}'.format(path))


def print_recording_summary(recording):
    """ Print sample rate, channels, duration, sources and data shape of a loaded recording. """
    header = recording.header
    print('\nSuccessfully loaded!')
    print('  Sample rate: {} Hz'.format(header['sample_rate']))
    print('  Channels: {}'.format(header['num_amplifier_channels']))
    print('  Duration: {:0.2f} seconds'.format(recording.duration()))

    if recording.source_files is not None:
        print('  Source files: {}'.format(len(recording.source_files)))
        for i, source in enumerate(recording.source_files):
            print('    {}: {}'.format(i + 1, source))

    if recording.data is not None:
        print('  First timestamps: {}'.format(recording.data['timestamps'][:5].tolist()))
        print('  Last timestamps: {}'.format(recording.data['timestamps'][-5:].tolist()))
        if 'amplifier_data' in recording.data:
            num_channels, num_samples = recording.data['amplifier_data'].shape
            print('  Data shape: {} channels x {} samples'.format(num_channels, num_samples))


def main(argv=None):
    argv = sys.argv if argv is None else argv
    if len(argv) < 2:
        print('Usage: {} <path_to_rhs_file_or_directory>'.format(argv[0]), file=sys.stderr)
        return 1

    print('Loading from: {}'.format(argv[1]))
    try:
        recording = load(argv[1])
    except (IntanError, OSError) as err:
        print('\nError loading file: {}'.format(err), file=sys.stderr)
        return 1

    print_recording_summary(recording)
    return 0


if __name__ == '__main__':
    sys.exit(main())
