"""
Loads library settings from configobj files and applies them to module attributes.

Settings for a name are looked up in these files, later files overriding earlier ones:

- <directory>/<name>.default.cfg     shipped defaults
- <directory>/<name>.<os>.cfg        platform specialization (windows, linux, osx)
- ~/<name>.cfg                       user override
- <directory>/<name>.cfg             local override

The merged result is validated against <directory>/<name>.schema.cfg, which converts values
to their declared types and fills in any defaults.
"""
import logging
import os
import platform

from configobj import ConfigObj, ConfigObjError, Section
from validate import Validator

logger = logging.getLogger(__name__)

# The default extension for configuration files
config_extension = '.cfg'


def config_flavor(name, flavor=None):
    return name if not flavor else name + '.' + flavor


def config_filename(name, directory):
    return os.path.join(directory, name + config_extension)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    return 'osx' if name == 'darwin' else name


def os_name():
    return map_os_name(platform.system())


def settings_files(name, directory, home=None):
    """
    Lists the files that may hold settings for the given name, lowest precedence first.
    :param home: the user's home directory. Defaults to ~
    """
    home = os.path.expanduser('~') if home is None else home
    return [
        config_filename(config_flavor(name, 'default'), directory),
        config_filename(config_flavor(name, os_name()), directory),
        config_filename(name, home),
        config_filename(name, directory),
    ]


def load_config_file(file, must_exist=False) -> ConfigObj:
    """
    Loads a single configuration file.
    :param must_exist:  when True, the file must exist or an IOError is raised. Otherwise
        a missing file gives an empty configuration.
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def load_config(name, directory, home=None) -> ConfigObj:
    """
    Loads and merges all the configuration files for the given name, then validates the result.
    :raises ConfigObjError: if the merged settings do not satisfy the schema.
    """
    schema = config_filename(config_flavor(name, 'schema'), directory)
    config = ConfigObj(configspec=schema) if os.path.exists(schema) else ConfigObj()
    for file in settings_files(name, directory, home):
        config.merge(load_config_file(file))

    if config.configspec is not None:
        result = config.validate(Validator())
        if result is not True:
            raise ConfigObjError("the config file %s failed validation %s" % (name, result))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves a nested section.
    :param path: the names of the sections to descend through.
    :return: the section, or None if any part of the path is missing.
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return None
    return conf


def apply_conf(conf: Section, target):
    """
    Sets each attribute on the target that has a value in the configuration section.
    Values that do not correspond to an existing attribute are ignored.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)
        else:
            logger.warning("ignoring unknown setting '%s'", k)


def configure_module(module, config_name=None, home=None):
    """
    Applies settings to the attributes of a module. The settings files are named after config_name
    and live beside the module source. Within the files, the module's settings are in the section
    path given by the module's fully qualified name, e.g. [hublink] [[defaults]] for hublink.defaults.
    """
    fqname = module.__name__
    if not config_name:
        config_name = fqname.split('.')[-1]
    conf = load_config(config_name, os.path.dirname(module.__file__), home)
    section = fetch_conf_path(conf, fqname.split('.'))
    if section:
        apply_conf(section, module)
