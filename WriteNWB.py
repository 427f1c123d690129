from hdmf.backends.hdf5.h5_utils import H5DataIO

import numpy as np
import pynwb

from ProcessData import (AMPLIFIER_SCALE_FACTOR, DC_AMPLIFIER_SCALE_FACTOR,
                         ADC_DAC_SCALE_FACTOR)

def create_intan_device(nwbfile, header):
    """ Create 'device' object for the Intan system that the data was acquired with.

    Parameters
    ----------
    nwbfile : pynwb.file.NWBFile
        Previously created NWB file that should contain this device
    header : dict
        Dict containing previously read header information

    Returns
    -------
    pynwb.device.Device
        Created NWB device representing Intan system
    """
    intan_device_name = 'Intan StimulationRecording Controller'
    intan_device_description = '128-channel RHS2000 StimulationRecording Controller, board mode ' + str(header['eval_board_mode'])
    intan_device_description += '. File version ' + str(header['version']['major']) + '.' + str(header['version']['minor'])
    return nwbfile.create_device(name=intan_device_name,
                                 description=intan_device_description,
                                 manufacturer='Intan Technologies')

def create_electrode_table_region(nwbfile, header, intan_device):
    """ Create 'electrode table region' object for the electrodes that the data was acquired with.

    Parameters
    ----------
    nwbfile : pynwb.file.NWBFile
        Previously created NWB file that should contain this electrode table region
    header : dict
        Dict containing previously read header information
    intan_device : pynwb.device.Device
        Previously created NWB device representing Intan system

    Returns
    -------
    electrode_table_region : hdmf.common.table.DynamicTableRegion or None
        Electrode table region for the electrodes that the data was acquired with,
        None if there are no amplifier channels.
    """
    if header['num_amplifier_channels'] == 0:
        return None

    nwbfile.add_electrode_column(name='imp_magnitude',
                                 description='magnitude (in ohms) of complex impedance of this channel')
    nwbfile.add_electrode_column(name='imp_phase',
                                 description='phase (in degrees) of complex impedance of this channel')
    nwbfile.add_electrode_column(name='native_channel_name',
                                 description='native, uneditable name (for example, A-000) of this channel')
    nwbfile.add_electrode_column(name='custom_channel_name',
                                 description='custom, user-editable name of this channel')

    # Create an electrode group for each port, and an electrode for each channel in its port's group
    created_electrode_groups = {}
    for channel, this_channel_struct in enumerate(header['amplifier_channels']):
        group_name = 'Intan ' + this_channel_struct['port_name'] + ' electrode group'
        if group_name not in created_electrode_groups:
            created_electrode_groups[group_name] = nwbfile.create_electrode_group(name=group_name,
                                                                                  description='electrodes on ' + this_channel_struct['port_name'],
                                                                                  location='unknown',
                                                                                  device=intan_device)

        nwbfile.add_electrode(id=channel,
                              location='unknown',
                              group=created_electrode_groups[group_name],
                              imp_magnitude=float(this_channel_struct['electrode_impedance_magnitude']),
                              imp_phase=float(this_channel_struct['electrode_impedance_phase']),
                              native_channel_name=this_channel_struct['native_channel_name'],
                              custom_channel_name=this_channel_struct['custom_channel_name'])

    return nwbfile.create_electrode_table_region(list(range(header['num_amplifier_channels'])),
                                                 'Intan electrode table region')

def get_compression_settings(use_compression, compression_level):
    """ Get compression settings to pass to H5DataIO functions

    Parameters
    ----------
    use_compression : bool
        Whether compression is to be used for written NWB data
    compression_level : int
        What level of compression is to be applied to written NWB data

    Returns
    -------
    compression : str or bool
        What type of compression is to be used for written NWB data, for example, 'gzip'
    compression_opts : int or None
        Options for compression. For gzip, what level of compression is to be applied to written NWB data
    """
    if not use_compression:
        return (False, None)
    return ('gzip', compression_level)

def wrap_data_1D(data_array, compression_settings):
    """ Wrap 1D sample-axis data (for example, timestamps) in a H5DataIO object """
    return H5DataIO(data=np.asarray(data_array),
                    compression=compression_settings[0],
                    compression_opts=compression_settings[1])

def wrap_data_2D(data_array, compression_settings):
    """ Wrap 2D [channel, sample] data in a H5DataIO object, transposed to NWB's [sample, channel] layout """
    return H5DataIO(data=np.asarray(data_array).T,
                    compression=compression_settings[0],
                    compression_opts=compression_settings[1])

def add_recording_to_nwb(nwbfile, recording, wideband_filter_string, use_compression=True, compression_level=4):
    """ Add every decoded signal of a recording to an NWB file as acquisition or stimulus series.

    Parameters
    ----------
    nwbfile : pynwb.file.NWBFile
        Previously created NWB file to add series to
    recording : LoadRHSFiles.Recording
        Loaded recording, with data present
    wideband_filter_string : str
        Description of how amplifier data has been filtered
    use_compression : bool
        Whether data in written NWB file should be compressed
    compression_level : int
        Int ranging from 0 to 9 indicating the level of 'gzip' compression

    Returns
    -------
    None
    """
    header = recording.header
    data = recording.data
    compression_settings = get_compression_settings(use_compression, compression_level)

    intan_device = create_intan_device(nwbfile, header)
    electrode_table_region = create_electrode_table_region(nwbfile, header, intan_device)

    # The first series written owns the timestamps; later series link to it
    timestamps = wrap_data_1D(data['t'], compression_settings)

    if 'amplifier_data' in data:
        amplifier_series = pynwb.ecephys.ElectricalSeries(
            name='ElectricalSeries',
            data=wrap_data_2D(data['amplifier_data'], compression_settings),
            electrodes=electrode_table_region,
            filtering=wideband_filter_string,
            resolution=AMPLIFIER_SCALE_FACTOR * 1e-6,
            conversion=1e-6,
            timestamps=timestamps,
            comments='voltage data (stored in microvolts) recorded from the amplifiers of '
            'an Intan Technologies chip',
            description='voltage data recorded from the amplifiers '
            'of an Intan Technologies chip')
        nwbfile.add_acquisition(amplifier_series)
        timestamps = amplifier_series

    if 'dc_amplifier_data' in data:
        nwbfile.add_acquisition(pynwb.TimeSeries(
            name='TimeSeries_dc',
            data=wrap_data_2D(data['dc_amplifier_data'], compression_settings),
            resolution=DC_AMPLIFIER_SCALE_FACTOR / 1000,
            unit='volts',
            timestamps=timestamps,
            description='DC electrical voltage data recorded '
            'from an Intan Technologies chip'))

    if 'stim_data' in data:
        stim_series = pynwb.TimeSeries(
            name='TimeSeries_stimulation',
            data=wrap_data_2D(data['stim_data'], compression_settings),
            resolution=float(header['stim_step_size']),
            unit='amps',
            timestamps=timestamps,
            description='current stimulation activity of an '
            'Intan Technologies chip')
        nwbfile.add_stimulus(stim_series)
        if not isinstance(timestamps, pynwb.TimeSeries):
            timestamps = stim_series

        for key, name, description in (('amp_settle_data', 'TimeSeries_amp_settle', 'amplifier settle activity'),
                                       ('charge_recovery_data', 'TimeSeries_charge_recovery', 'charge recovery activity'),
                                       ('compliance_limit_data', 'TimeSeries_compliance_limit', 'compliance limit activity')):
            nwbfile.add_stimulus(pynwb.TimeSeries(
                name=name,
                data=wrap_data_2D(data[key].astype(np.uint8), compression_settings),
                unit='digital event',
                timestamps=timestamps,
                description=description + ' of an Intan Technologies chip'))

    for key, name, unit, resolution, description in (
            ('board_adc_data', 'TimeSeries_analog_input', 'volts', ADC_DAC_SCALE_FACTOR, 'analog input data'),
            ('board_dac_data', 'TimeSeries_analog_output', 'volts', ADC_DAC_SCALE_FACTOR, 'analog output data'),
            ('board_dig_in_data', 'TimeSeries_digital_input', 'digital event', -1.0, 'digital input data'),
            ('board_dig_out_data', 'TimeSeries_digital_output', 'digital event', -1.0, 'digital output data')):
        if key not in data:
            continue
        series = pynwb.TimeSeries(
            name=name,
            data=wrap_data_2D(data[key], compression_settings),
            resolution=resolution,
            unit=unit,
            timestamps=timestamps,
            description=description + ' recorded from an Intan Technologies system')
        nwbfile.add_acquisition(series)
        if not isinstance(timestamps, pynwb.TimeSeries):
            timestamps = series
