import struct, os

from SetupResources import SAMPLES_PER_DATA_BLOCK, SIGNAL_KINDS, num_words_per_sample
from IntanErrors import (UnrecognizedFileError, InvalidChannelTypeError,
                         StringReadError, HeaderMismatchError)

RHS_MAGIC_NUMBER = 0xd69127ac

# Signal type codes stored with each channel in the signal summary
AMPLIFIER_SIGNAL = 0
AUX_INPUT_SIGNAL = 1
SUPPLY_VOLTAGE_SIGNAL = 2
BOARD_ADC_SIGNAL = 3
BOARD_DAC_SIGNAL = 4
BOARD_DIG_IN_SIGNAL = 5
BOARD_DIG_OUT_SIGNAL = 6

CHANNEL_LIST_FOR_SIGNAL_TYPE = {
    AMPLIFIER_SIGNAL: 'amplifier_channels',
    BOARD_ADC_SIGNAL: 'board_adc_channels',
    BOARD_DAC_SIGNAL: 'board_dac_channels',
    BOARD_DIG_IN_SIGNAL: 'board_dig_in_channels',
    BOARD_DIG_OUT_SIGNAL: 'board_dig_out_channels',
}

def read_header(fid, print_status=True):
    """Read the Intan RHS File Format header from the given binary stream.

    The stream is left positioned at the first byte after the header, which is where data blocks begin.

    Parameters
    ----------
    fid : _io.BufferedReader or io.BytesIO
        Seekable binary stream positioned at the start of an .rhs file
    print_status : bool
        Whether a summary of this header should be printed

    Returns
    -------
    header : dict
        Dict containing read header information.
    """
    header = {}

    # Check 'magic number' at beginning of file to make sure this is an Intan
    # Technologies RHS2000 data file.
    magic_number, = struct.unpack('<I', fid.read(4))
    if magic_number != RHS_MAGIC_NUMBER:
        raise UnrecognizedFileError('Unrecognized file type: magic number {:#010x}'.format(magic_number))

    # Read version number.
    version = {}
    (version['major'], version['minor']) = struct.unpack('<hh', fid.read(4))
    header['version'] = version

    if print_status:
        print('')
        print('Reading Intan Technologies RHS2000 Data File, Version {}.{}'.format(version['major'], version['minor']))
        print('')

    header['num_samples_per_data_block'] = SAMPLES_PER_DATA_BLOCK

    # Read information of sampling rate and amplifier frequency settings.
    header['sample_rate'], = struct.unpack('<f', fid.read(4))
    (header['dsp_enabled'],
     header['actual_dsp_cutoff_frequency'],
     header['actual_lower_bandwidth'],
     header['actual_lower_settle_bandwidth'],
     header['actual_upper_bandwidth'],
     header['desired_dsp_cutoff_frequency'],
     header['desired_lower_bandwidth'],
     header['desired_lower_settle_bandwidth'],
     header['desired_upper_bandwidth']) = struct.unpack('<hffffffff', fid.read(34))

    # This tells us if a software 50/60 Hz notch filter was enabled during
    # the data acquisition.
    notch_filter_mode, = struct.unpack('<h', fid.read(2))
    header['notch_filter_frequency'] = 0
    if notch_filter_mode == 1:
        header['notch_filter_frequency'] = 50
    elif notch_filter_mode == 2:
        header['notch_filter_frequency'] = 60

    (header['desired_impedance_test_frequency'], header['actual_impedance_test_frequency']) = struct.unpack('<ff', fid.read(8))
    (header['amp_settle_mode'], header['charge_recovery_mode']) = struct.unpack('<hh', fid.read(4))

    header['frequency_parameters'] = get_frequency_parameters(header)

    (header['stim_step_size'],
     header['recovery_current_limit'],
     header['recovery_target_voltage']) = struct.unpack('<fff', fid.read(12))

    header['stim_parameters'] = get_stim_parameters(header)

    note1 = read_qstring(fid)
    note2 = read_qstring(fid)
    note3 = read_qstring(fid)
    header['notes'] = {'note1': note1, 'note2': note2, 'note3': note3}

    (dc_amplifier_data_saved,
     header['eval_board_mode']) = struct.unpack('<hh', fid.read(4))
    header['dc_amplifier_data_saved'] = dc_amplifier_data_saved != 0

    header['reference_channel'] = read_qstring(fid)

    # Create structure arrays for each type of data channel.
    header['spike_triggers'] = []
    for channel_list in CHANNEL_LIST_FOR_SIGNAL_TYPE.values():
        header[channel_list] = []

    read_signal_summary(fid, header)

    # Summarize contents of data file.
    header['num_amplifier_channels'] = len(header['amplifier_channels'])
    header['num_board_adc_channels'] = len(header['board_adc_channels'])
    header['num_board_dac_channels'] = len(header['board_dac_channels'])
    header['num_board_dig_in_channels'] = len(header['board_dig_in_channels'])
    header['num_board_dig_out_channels'] = len(header['board_dig_out_channels'])

    header['size'] = fid.tell()
    header['total_file_size'] = get_stream_size(fid)
    header['data_present'] = (header['total_file_size'] - header['size']) > 0

    if print_status:
        print_summary(header)

    return header

def get_frequency_parameters(header):
    """ Gather the sample rate and bandwidth settings of a partially read header into one dict. """
    frequency_parameters = {}
    frequency_parameters['amplifier_sample_rate'] = header['sample_rate']
    frequency_parameters['board_adc_sample_rate'] = header['sample_rate']
    frequency_parameters['board_dig_in_sample_rate'] = header['sample_rate']
    for field in ('desired_dsp_cutoff_frequency', 'actual_dsp_cutoff_frequency', 'dsp_enabled',
                  'desired_lower_bandwidth', 'desired_lower_settle_bandwidth',
                  'actual_lower_bandwidth', 'actual_lower_settle_bandwidth',
                  'desired_upper_bandwidth', 'actual_upper_bandwidth',
                  'notch_filter_frequency',
                  'desired_impedance_test_frequency', 'actual_impedance_test_frequency'):
        frequency_parameters[field] = header[field]
    return frequency_parameters

def get_stim_parameters(header):
    """ Gather the stimulation settings of a partially read header into one dict. """
    return {'stim_step_size': header['stim_step_size'],
            'charge_recovery_current_limit': header['recovery_current_limit'],
            'charge_recovery_target_voltage': header['recovery_target_voltage'],
            'amp_settle_mode': header['amp_settle_mode'],
            'charge_recovery_mode': header['charge_recovery_mode']}

def read_signal_summary(fid, header):
    """ Read every signal group of the header, appending enabled channels to the channel lists of header.

    Parameters
    ----------
    fid : _io.BufferedReader or io.BytesIO
        Binary stream positioned at the signal group count
    header : dict
        Dict containing previously read header information, with empty channel lists

    Returns
    -------
    None
    """
    number_of_signal_groups, = struct.unpack('<h', fid.read(2))

    for signal_group in range(1, number_of_signal_groups + 1):
        signal_group_name = read_qstring(fid)
        signal_group_prefix = read_qstring(fid)
        (signal_group_enabled, signal_group_num_channels, _) = struct.unpack('<hhh', fid.read(6))

        if (signal_group_num_channels > 0) and (signal_group_enabled > 0):
            for _ in range(signal_group_num_channels):
                read_channel(fid, header, signal_group_name, signal_group_prefix, signal_group)

def read_channel(fid, header, port_name, port_prefix, port_number):
    """ Read one channel record and file it under the channel list matching its signal type.

    Parameters
    ----------
    fid : _io.BufferedReader or io.BytesIO
        Binary stream positioned at the start of a channel record
    header : dict
        Dict containing previously read header information
    port_name : str
        Name of the signal group (port) this channel belongs to
    port_prefix : str
        Prefix of the signal group (port) this channel belongs to
    port_number : int
        1-based index of the signal group within the header

    Returns
    -------
    None
    """
    new_channel = {'port_name': port_name, 'port_prefix': port_prefix, 'port_number': port_number}
    new_channel['native_channel_name'] = read_qstring(fid)
    new_channel['custom_channel_name'] = read_qstring(fid)
    (new_channel['native_order'], new_channel['custom_order'],
     signal_type, channel_enabled, new_channel['chip_channel'],
     _, new_channel['board_stream']) = struct.unpack('<hhhhhhh', fid.read(14)) # ignore command_stream

    new_trigger_channel = {}
    (new_trigger_channel['voltage_trigger_mode'],
     new_trigger_channel['voltage_threshold'],
     new_trigger_channel['digital_trigger_channel'],
     new_trigger_channel['digital_edge_polarity']) = struct.unpack('<hhhh', fid.read(8))
    (new_channel['electrode_impedance_magnitude'],
     new_channel['electrode_impedance_phase']) = struct.unpack('<ff', fid.read(8))

    if not channel_enabled:
        return

    if signal_type in (AUX_INPUT_SIGNAL, SUPPLY_VOLTAGE_SIGNAL):
        raise InvalidChannelTypeError('Wrong signal type for rhs format: {} (channel {})'.format(signal_type, new_channel['native_channel_name']))
    if signal_type not in CHANNEL_LIST_FOR_SIGNAL_TYPE:
        raise InvalidChannelTypeError('Unknown channel type: {} (channel {})'.format(signal_type, new_channel['native_channel_name']))

    header[CHANNEL_LIST_FOR_SIGNAL_TYPE[signal_type]].append(new_channel)
    if signal_type == AMPLIFIER_SIGNAL:
        header['spike_triggers'].append(new_trigger_channel)

def get_stream_size(fid):
    """ Return the total length in bytes of a seekable stream, leaving its position unchanged. """
    pos = fid.tell()
    size = fid.seek(0, os.SEEK_END)
    fid.seek(pos)
    return size

def get_bytes_per_data_block(header):
    """ Calculate the number of bytes in each 128 sample datablock.

    Each block holds a 32-bit timestamp per sample, then 16-bit words for every signal kind
    present in the file (see SetupResources.SIGNAL_KINDS).

    Parameters
    ----------
    header : dict
        Dict containing previously read header information

    Returns
    -------
    int
        Number of bytes contained in each datablock.
    """
    N = SAMPLES_PER_DATA_BLOCK

    bytes_per_block = N * 4  # timestamp data
    for kind in SIGNAL_KINDS:
        bytes_per_block += N * 2 * num_words_per_sample(header, kind)

    return bytes_per_block

def verify_header_compatibility(h1, h2):
    """ Compare critical values (sample rate, channel counts and amplifier channel names) between 2 headers,
    raising if the files they describe cannot be combined.
    Non-critical differences that can be ignored include:
    notch filter mode, impedance frequency, notes, and reference channel

    Parameters
    ----------
    h1 : dict
        Dict containing read header information from the original file
    h2 : dict
        Dict containing read header information from the file to compare to

    Returns
    -------
    None
    """
    if abs(h1['sample_rate'] - h2['sample_rate']) > 0.01:
        raise HeaderMismatchError("Sample rates don't match: {} Hz vs {} Hz".format(h1['sample_rate'], h2['sample_rate']))

    conflict_in_num_channels(h1, h2, 'amplifier_channels', 'amplifier')
    conflict_in_num_channels(h1, h2, 'board_adc_channels', 'board ADC')
    conflict_in_num_channels(h1, h2, 'board_dig_in_channels', 'digital input')

    for idx, (ch1, ch2) in enumerate(zip(h1['amplifier_channels'], h2['amplifier_channels'])):
        if ch1['native_channel_name'] != ch2['native_channel_name']:
            raise HeaderMismatchError("Amplifier channel {} names don't match: '{}' vs '{}'".format(
                idx, ch1['native_channel_name'], ch2['native_channel_name']))

def conflict_in_num_channels(h1, h2, channel_list, description):
    """ Raise HeaderMismatchError if the two headers have a different number of channels in channel_list. """
    n1 = len(h1[channel_list])
    n2 = len(h2[channel_list])
    if n1 != n2:
        raise HeaderMismatchError("Number of {} channels don't match: {} vs {}".format(description, n1, n2))

def print_summary(header):
    """ Print easily understandable summary of contents of header.

    Parameters
    ----------
    header : dict
        Dict containing previously read header information.

    Returns
    -------
    None
    """
    print('Found {} amplifier channel{}.'.format(header['num_amplifier_channels'], plural(header['num_amplifier_channels'])))
    if header['dc_amplifier_data_saved']:
        print('Found {} DC amplifier channel{}.'.format(header['num_amplifier_channels'], plural(header['num_amplifier_channels'])))
    print('Found {} board ADC channel{}.'.format(header['num_board_adc_channels'], plural(header['num_board_adc_channels'])))
    print('Found {} board DAC channel{}.'.format(header['num_board_dac_channels'], plural(header['num_board_dac_channels'])))
    print('Found {} board digital input channel{}.'.format(header['num_board_dig_in_channels'], plural(header['num_board_dig_in_channels'])))
    print('Found {} board digital output channel{}.'.format(header['num_board_dig_out_channels'], plural(header['num_board_dig_out_channels'])))
    print('')

def plural(n):
    """Utility function to optionally pluralize words based on the value of n.

    Parameters
    ----------
    n : int
        Number of items. If n is 1, then pluralizing is inappropriate

    Returns
    -------
    str
        Either empty string '' or 's' if pluralizing is appropriate
    """
    if n == 1:
        return ''
    else:
        return 's'

def read_qstring(fid):
    """Read Qt style QString.

    The first 32-bit unsigned number indicates the length of the string (in bytes).
    If this number equals 0xFFFFFFFF, the string is null.

    Strings are stored as unicode.

    Parameters
    ----------
    fid : _io.BufferedReader or io.BytesIO
        Binary stream of the file to read from

    Returns
    -------
    a : str
        Read QString as a standard Python string
    """
    length, = struct.unpack('<I', fid.read(4))
    if length == 0xFFFFFFFF: return ""

    bytes_remaining = get_stream_size(fid) - fid.tell()
    if length > bytes_remaining:
        raise StringReadError('Length too long: string claims {} bytes but only {} remain'.format(length, bytes_remaining))

    # convert length from bytes to whole 16-bit Unicode words
    length = length // 2

    try:
        a = fid.read(2 * length).decode('utf-16-le')
    except UnicodeDecodeError as err:
        raise StringReadError('Invalid UTF-16 string: {}'.format(err)) from err

    return a
