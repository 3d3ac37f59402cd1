import logging
import os
import platform

from configobj import ConfigObj, ConfigObjError, Section, flatten_errors
from validate import Validator

logger = logging.getLogger(__name__)

# The default extension for configuration files
config_extension = '.cfg'


def config_flavor(name, flavor=None):
    """
    >>> config_flavor('socketmanager', 'schema')
    'socketmanager.schema'
    """
    return name if not flavor else name + '.' + flavor


def config_filename(name, directory=None):
    """
    Determines the location of a config file. Files live beside this module unless a directory is given.
    """
    if directory is None:
        directory = os.path.dirname(os.path.abspath(__file__))
    return os.path.join(directory, name + config_extension)


def load_config_file_base(file, must_exist=True):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    if must_exist or os.path.exists(file):
        return ConfigObj(file, interpolation='Template', file_error=must_exist)
    return ConfigObj()


def config_flavor_file(name, directory=None, flavor=None, must_exist=False) -> ConfigObj:
    """
    Loads a specialization of a config file, named after the base followed by a period and the
    specialization, or just the base name when no specialization is given.
    """
    file = config_filename(config_flavor(name, flavor), directory)
    return load_config_file_base(file, must_exist)


def load_schema(name, directory=None) -> ConfigObj:
    """ Loads the schema specialization, which describes the type and default of each value. """
    file = config_filename(config_flavor(name, 'schema'), directory)
    return ConfigObj(file, _inspec=True, list_values=False, file_error=True)


def load_config(name, directory=None, user_file=None) -> ConfigObj:
    """
    Loads all the configuration files that relate to the given name.
    Later files override earlier ones:
    - the default specialization
    - the platform specialization
    - the user override (~/<name>.cfg unless user_file is given)
    - the base configuration
    The merged configuration is validated against the schema specialization, which must exist.
    :raises ConfigObjError: when a value does not satisfy the schema
    """
    config = ConfigObj()
    config.merge(config_flavor_file(name, directory, 'default'))
    config.merge(config_flavor_file(name, directory, platform.system().lower()))
    if user_file is None:
        user_file = os.path.expanduser('~/' + name + config_extension)
    config.merge(load_config_file_base(user_file, must_exist=False))
    config.merge(config_flavor_file(name, directory))

    config.configspec = load_schema(name, directory)
    result = config.validate(Validator(), preserve_errors=True)
    if result is not True:
        failures = []
        for section_list, key, res in flatten_errors(config, result):
            section = ', '.join(section_list) or 'root'
            if key is not None:
                failures.append('"%s" in section "%s": %s' % (key, section, res or 'missing'))
            else:
                failures.append('missing section "%s"' % section)
        for failure in failures:
            logger.error("configuration %s failed validation: %s" % (name, failure))
        raise ConfigObjError("the config %s failed validation: %s" % (name, '; '.join(failures)))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:    The root configuration
    :param path:    An iterable of the section names leading to the section
    :return: The configuration section identified by the path, or None
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return None
    return conf


def apply_conf_path(conf: Section, name_parts, target):
    """
    Applies the values in a configuration section to a target object
    :param conf:        The root configuration object
    :param name_parts:  The path of the section to apply
    :param target:      The target object that receives the configured values
    """
    conf = fetch_conf_path(conf, name_parts)
    if conf:
        apply_conf(conf, target)


def apply_conf(conf: Section, target):
    """
    Sets each attribute of the target that has the same name as a configuration value.
    Values without a matching attribute are ignored.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)


def apply(target, config_path, config_name, directory=None, user_file=None):
    """
    Applies the values from a section of a configuration to a target object.
    :param config_path: the section path, split on '.'
    :param config_name: the base name of the configuration to load
    """
    conf = load_config(config_name, directory, user_file)
    apply_conf_path(conf, config_path.split('.'), target)
    return target
