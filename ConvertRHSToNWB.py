"""Module to convert a loaded Intan RHS recording to NWB format.
"""

import time

import pynwb

from IntanErrors import IntanError

from ReadSettingsFile import read_settings

from LoadRHSFiles import load

from SetupResources import parse_filename

from ProcessData import describe_wideband_filter

from WriteNWB import add_recording_to_nwb


def convert_to_nwb(settings_filename=None,
                   intan_path=None,
                   nwb_filename=None,
                   session_description=None,
                   use_compression=True,
                   compression_level=4,
                   subject=None,
                   manual_start_time=None,
                   apply_notch=True,
                   print_status=True):
    """ Convert the specified Intan RHS file (or directory of RHS files) to NWB format.

    Parameters
    ----------
    settings_filename : str or None
        Name of settings file to load to get conversion settings. Any field present in
        the settings file overrides the value of the matching parameter.
    intan_path : str or None
        Name of .rhs file to convert, or a directory whose .rhs files are combined
        in name order and converted together.
    nwb_filename : str or None
        If present, name of output .nwb file. If not present, this will use the same
        base name as intan_path, just with a .nwb extension.
    session_description : str or None
        Text to populate session description field of NWB file. If this parameter is
        not supplied, it will be the concatenation of Note1, Note2, and Note3 from the
        header.
    use_compression : bool
        Whether data in written NWB file should be compressed. If so,
        'compression_level' will determine the level of compression.
    compression_level : int
        Int ranging from 0 to 9 indicating the level of 'gzip' compression.
    subject : pynwb.file.Subject or None
        If present, this subject object contains metadata about the subject from which
        this data was gathered.
    manual_start_time : datetime.datetime or None
        If present, this contains the date and time that the recording session
        started. If not, an attempt will be made to parse the file name for a
        timestamp to use.
    apply_notch : bool
        Whether the notch filter selected in the header may be applied to amplifier data
    print_status : bool
        Whether progress and summaries should be printed

    Returns
    -------
    out_filename : str
        Name of the written .nwb file
    """
    # Any field given in the settings file overwrites the matching parameter
    if settings_filename is not None:
        settings = read_settings(settings_filename)
        if settings['intan_path'] is not None:
            intan_path = settings['intan_path']
        if settings['nwb_filename'] is not None:
            nwb_filename = settings['nwb_filename']
        if settings['session_description'] is not None:
            session_description = settings['session_description']
        if settings['apply_notch'] is not None:
            apply_notch = settings['apply_notch']
        if settings['use_compression'] is not None:
            use_compression = settings['use_compression']
        if settings['compression_level'] is not None:
            compression_level = settings['compression_level']
        if settings['print_status'] is not None:
            print_status = settings['print_status']

    if intan_path is None:
        raise IntanError('No Intan file or directory given to convert')

    # Start timing.
    tic = time.time()

    recording = load(intan_path, apply_notch, print_status)
    if not recording.data_present:
        raise IntanError('No data present to convert in: {}'.format(intan_path))

    header = recording.header

    # Determine output filename and session start time from the input name
    out_filename, session_start_time = parse_filename(intan_path)
    if nwb_filename is not None:
        out_filename = nwb_filename

    if manual_start_time is not None:
        session_start_time = manual_start_time

    # If session description wasn't provided, get notes from header.
    if session_description is None:
        if (not (header['notes']['note1']
                 or header['notes']['note2']
                 or header['notes']['note3'])):
            session_description = 'no description provided'
        else:
            session_description = (header['notes']['note1']
                                   + ', ' + header['notes']['note2']
                                   + ', ' + header['notes']['note3'])

    # Set up NWB file.
    nwbfile = pynwb.NWBFile(
        session_description=session_description,
        identifier=out_filename[:-4],
        session_start_time=session_start_time,
        subject=subject)

    add_recording_to_nwb(nwbfile,
                         recording,
                         describe_wideband_filter(header, apply_notch),
                         use_compression,
                         compression_level)

    if print_status:
        print('Writing NWB file {}...'.format(out_filename))

    with pynwb.NWBHDF5IO(out_filename, 'w') as io:
        io.write(nwbfile)

    if print_status:
        print('Conversion complete! Elapsed time: {:0.1f} seconds'.format(time.time() - tic))

    return out_filename
