import numpy as np
import math

# Scaling constants for raw 16-bit words (from the Intan RHS data file format)
AMPLIFIER_SCALE_FACTOR = 0.195 # microvolts per bit
AMPLIFIER_OFFSET = 32768
DC_AMPLIFIER_SCALE_FACTOR = 19.23 # millivolts per bit, applied with a positive sign
DC_AMPLIFIER_OFFSET = 512
ADC_DAC_SCALE_FACTOR = 0.0003125 # volts per bit
ADC_DAC_OFFSET = 32768

# Notch filter 3-dB bandwidth (Hz)
NOTCH_BANDWIDTH = 10

PRINT_PROGRESS_STEP = 10

def to_unsigned(data_raw):
    """ Recover unsigned 16-bit codes from words that were read as signed 16-bit integers """
    data_raw = np.asarray(data_raw, dtype=np.int64)
    return np.where(data_raw < 0, data_raw + 65536, data_raw)

def scale_amplifier_data(data_raw):
    """ Scale raw amplifier words to microvolts """
    return (to_unsigned(data_raw) - AMPLIFIER_OFFSET) * AMPLIFIER_SCALE_FACTOR

def scale_dc_amplifier_data(data_raw):
    """ Scale raw DC amplifier words to volts """
    return (to_unsigned(data_raw) - DC_AMPLIFIER_OFFSET) * DC_AMPLIFIER_SCALE_FACTOR / 1000

def scale_adc_dac_data(data_raw):
    """ Scale raw board ADC or DAC words to volts """
    return (to_unsigned(data_raw) - ADC_DAC_OFFSET) * ADC_DAC_SCALE_FACTOR

def extract_digital_data(channels, raw_data):
    """ Extract digital i/o from a 1D array of shared words to a 2D array with separate channels

    Parameters
    ----------
    channels : list
        List of channel dicts; each channel's 'native_order' is its bit position in the shared word
    raw_data : numpy.ndarray
        1D array containing one shared 16-bit word per sample

    Returns
    -------
    extracted_data : numpy.ndarray
        2D array [channel, sample] of 1 (bit set) or 0 (bit clear)
    """
    extracted_data = np.zeros([len(channels), len(raw_data)], dtype=np.int32)

    # Apply channel-specific masks to raw digin data to determine each channel's samples as 1 or 0
    for idx, channel in enumerate(channels):
        channel_mask = 1 << channel['native_order']
        extracted_data[idx, :] = np.not_equal(np.bitwise_and(raw_data, channel_mask), 0)

    return extracted_data

def extract_stim_data(stim_data_raw, stim_step_size):
    """ Extract raw stim words containing multiple fields into separate 2D arrays for each field

    Bits are taken directly from the signed words: bit 15 is compliance limit, bit 14 charge recovery,
    bit 13 amp settle, bit 8 the polarity (set means negative) and the low 8 bits the current magnitude.

    Parameters
    ----------
    stim_data_raw : numpy.ndarray
        2D array [channel, sample] of raw stim words
    stim_step_size : float
        Stimulation current step size from the header

    Returns
    -------
    stim_data : numpy.ndarray
        Stim current, in the same units as stim_step_size
    compliance_limit_data : numpy.ndarray
        Bool array, True where the compliance limit was reached
    charge_recovery_data : numpy.ndarray
        Bool array, True where charge recovery was active
    amp_settle_data : numpy.ndarray
        Bool array, True where amp settle was active
    """
    stim_data_raw = np.asarray(stim_data_raw, dtype=np.int32)

    compliance_limit_data = np.bitwise_and(stim_data_raw, 32768) != 0 # get 2^15 bit, interpret as True or False
    charge_recovery_data = np.bitwise_and(stim_data_raw, 16384) != 0 # get 2^14 bit, interpret as True or False
    amp_settle_data = np.bitwise_and(stim_data_raw, 8192) != 0 # get 2^13 bit, interpret as True or False
    stim_polarity = 1 - (2 * (np.bitwise_and(stim_data_raw, 256) >> 8)) # get 2^8 bit, interpret as +1 for 0_bit or -1 for 1_bit

    curr_amp = np.bitwise_and(stim_data_raw, 255) # get least-significant 8 bits corresponding to the current amplitude
    stim_data = curr_amp * stim_polarity * stim_step_size # multiply current amplitude by the correct sign and step size

    return stim_data, compliance_limit_data, charge_recovery_data, amp_settle_data

def check_for_gaps(timestamps):
    """ Return how many times consecutive timestamps differ by something other than 1 """
    if len(timestamps) < 2:
        return 0
    return int(np.sum(np.not_equal(np.diff(timestamps.astype(np.int64)), 1)))

def report_gaps(num_gaps, print_status=True):
    """ Report whether gaps in timestamp data were found. A warning is always printed, never raised. """
    if num_gaps == 0:
        if print_status:
            print('No missing timestamps in data.')
    else:
        print('Warning: {} gaps in timestamp data found. Time scale will not be uniform!'.format(num_gaps))

def scale_timestamps(header, timestamps):
    """ Divide int timestamp data by the sample rate in Hz to get timestamp data in seconds """
    return timestamps / header['sample_rate']

def process_data(header, raw_data, apply_notch=True, print_status=True):
    """ Convert raw data arrays read from data blocks into scaled, extracted signals

    Parameters
    ----------
    header : dict
        Dict containing previously read header information
    raw_data : dict
        Dict containing 'timestamps' and '<kind>_raw' arrays, as returned by ReadRHSData.read_all_data_blocks
    apply_notch : bool
        Whether the notch filter selected in the header may be applied to amplifier data
    print_status : bool
        Whether processing progress should be printed

    Returns
    -------
    data : dict
        Dict with 'timestamps', 't' (seconds), and an entry per present signal: 'amplifier_data',
        'dc_amplifier_data', 'stim_data', 'compliance_limit_data', 'charge_recovery_data',
        'amp_settle_data', 'board_adc_data', 'board_dac_data', 'board_dig_in_data', 'board_dig_out_data'
    """
    if print_status:
        print('Processing data...')

    data = {}
    data['timestamps'] = raw_data['timestamps']
    report_gaps(check_for_gaps(data['timestamps']), print_status)
    data['t'] = scale_timestamps(header, data['timestamps'])

    if 'amplifier_raw' in raw_data:
        data['amplifier_data'] = scale_amplifier_data(raw_data['amplifier_raw'])
        if apply_notch:
            process_wideband(header, data, print_status)

    if 'dc_amplifier_raw' in raw_data:
        data['dc_amplifier_data'] = scale_dc_amplifier_data(raw_data['dc_amplifier_raw'])

    if 'stim_raw' in raw_data:
        (data['stim_data'],
         data['compliance_limit_data'],
         data['charge_recovery_data'],
         data['amp_settle_data']) = extract_stim_data(raw_data['stim_raw'], header['stim_step_size'])

    if 'board_adc_raw' in raw_data:
        data['board_adc_data'] = scale_adc_dac_data(raw_data['board_adc_raw'])

    if 'board_dac_raw' in raw_data:
        data['board_dac_data'] = scale_adc_dac_data(raw_data['board_dac_raw'])

    # Extract digital input/output channels to separate variables
    if 'board_dig_in_raw' in raw_data:
        data['board_dig_in_data'] = extract_digital_data(header['board_dig_in_channels'], raw_data['board_dig_in_raw'])

    if 'board_dig_out_raw' in raw_data:
        data['board_dig_out_data'] = extract_digital_data(header['board_dig_out_channels'], raw_data['board_dig_out_raw'])

    return data

def notch_filter_applies(header):
    """ Whether the header calls for a software notch filter on amplifier data.
    v3.0+ files (from Intan RHX software) already had any selected notch filter applied before saving.
    """
    return header['notch_filter_frequency'] > 0 and header['version']['major'] < 3

def process_wideband(header, data, print_status=True):
    """ Process wideband data, applying a notch filter if appropriate

    Parameters
    ----------
    header : dict
        Dict containing previously read header information
    data : dict
        Dict with 'amplifier_data' (scaled to microvolts) which is filtered in place
    print_status : bool
        Whether filtering progress should be printed

    Returns
    -------
    wideband_filter_string : str
        String describing how the wideband data has been filtered
    """
    if not notch_filter_applies(header):
        return describe_wideband_filter(header, False)

    if print_status:
        print('Applying notch filter...')

    num_channels = data['amplifier_data'].shape[0]
    percent_done = PRINT_PROGRESS_STEP
    for channel in range(num_channels):
        data['amplifier_data'][channel, :] = notch_filter(data['amplifier_data'][channel, :],
                                                          header['sample_rate'],
                                                          header['notch_filter_frequency'],
                                                          NOTCH_BANDWIDTH)
        if print_status:
            while 100 * (channel + 1) / num_channels >= percent_done and percent_done <= 100:
                print('{}% done...'.format(percent_done))
                percent_done += PRINT_PROGRESS_STEP

    return describe_wideband_filter(header, True)

def describe_wideband_filter(header, apply_notch=True):
    """ Describe how amplifier data was filtered, for NWB 'filtering' metadata """
    if apply_notch and notch_filter_applies(header):
        return 'Wideband data, filtered through a ' + str(header['notch_filter_frequency']) + ' Hz IIR notch filter'
    return 'Wideband data'

def notch_filter(in_array, f_sample, f_notch, bandwidth):
    """ Implement a notch filter (e.g., for 50 or 60 Hz) on input vector.

    Example:  If neural data was sampled at 30 kSamples/sec and you wish to implement a 60 Hz notch filter:
    out_array = notch_filter(in_array, 30000, 60, 10)

    Parameters
    ----------
    in_array : numpy.ndarray
        1D array containing unfiltered data that should have a notch filter applied to it
    f_sample : float
        Sample rate of data (Hz or Samples/sec)
    f_notch : float or int
        Filter notch frequency (Hz)
    bandwidth : float or int
        Notch 3-dB bandwidth (Hz). A bandwidth of 10 Hz is recommended for 50 or 60 Hz notch filters;
        narrower bandwidths lead to poor time-domain properties with an extended ringing response to transient disturbances.

    Returns
    -------
    out_array : numpy.ndarray
        1D array containing notch-filtered data
    """
    t_step = 1.0/f_sample
    f_c = f_notch*t_step

    L = len(in_array)

    # Calculate IIR filter parameters
    d = math.exp(-2.0*math.pi*(bandwidth/2.0)*t_step)
    b = (1.0 + d*d) * math.cos(2.0*math.pi*f_c)
    a0 = 1.0
    a1 = -b
    a2 = d*d
    a = (1.0 + d*d)/2.0
    b0 = 1.0
    b1 = -2.0 * math.cos(2.0*math.pi*f_c)
    b2 = 1.0

    out_array = np.array(in_array, dtype=np.float64)
    if L < 3:
        return out_array

    # The first two output samples are copied unfiltered from the input (initial condition)
    for i in range(2, L):
        out_array[i] = (a*b2*in_array[i-2] + a*b1*in_array[i-1] + a*b0*in_array[i] - a2*out_array[i-2] - a1*out_array[i-1])/a0

    return out_array
