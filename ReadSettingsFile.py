import pandas as pd

# Every field that may be given in the settings file, with the type it is returned as
SETTINGS_FIELDS = (
    ('intan_path', 'str'),
    ('nwb_filename', 'str'),
    ('session_description', 'str'),
    ('apply_notch', 'bool'),
    ('use_compression', 'bool'),
    ('compression_level', 'int'),
    ('print_status', 'bool'),
)

def read_field(settings_filename, field_name, var_type='str'):
    """ Read the value matching the field_name from the .xlsx file in settings_filename.
    This looks for the 'SettingsSheet' sheet of the Excel file, and returns the value for the
    first row whose Column 0 contains field_name.

    Parameters
    ----------
    settings_filename : str
        Name of settings file to load loading/conversion settings from. Should be a .xlsx file.
    field_name : str
        String of text to search the first column of the settings file for. Beware that this
        matches the first row containing field_name as part of its text.
    var_type : str
        'bool', 'str', 'int' or 'float', determining how this field is returned

    Returns
    -------
    field_value : str, bool, int, float or None
        Field value from the settings file converted to var_type, or None if the field is missing
        or has no value
    """
    if var_type not in ('bool', 'str', 'int', 'float'):
        raise ValueError('Unrecognized var_type argument: {}'.format(var_type))

    settings_file = pd.ExcelFile(settings_filename)
    df = settings_file.parse('SettingsSheet')

    # Rows that contain, at least partially, field_name in Column 0
    df_of_matching_rows = df[df.iloc[:, 0].astype(str).str.contains(field_name, regex=False)]
    if df_of_matching_rows.empty:
        return None

    series_of_first_matching_row = df_of_matching_rows.iloc[0, :]
    if series_of_first_matching_row.hasnans:
        return None

    field_value_str = str(series_of_first_matching_row.array[1])
    if var_type == 'bool':
        return field_value_str.lower() == 'true'
    if var_type == 'int':
        return int(float(field_value_str))
    if var_type == 'float':
        return float(field_value_str)
    return field_value_str

def read_settings(settings_filename):
    """ Read every known settings field from settings_filename into a dict (None for missing fields) """
    return {field_name: read_field(settings_filename, field_name, var_type)
            for field_name, var_type in SETTINGS_FIELDS}
