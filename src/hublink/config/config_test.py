import os
import shutil
import tempfile
import types
import unittest
from unittest.mock import patch

from configobj import ConfigObjError, ConfigObj
from hamcrest import assert_that, is_, equal_to, has_property, is_not, calling, raises, none, contains_exactly

from hublink.config.config import configure_module, config_filename, config_flavor, load_config_file, \
    load_config, map_os_name, fetch_conf_path, apply_conf, settings_files

schema = """
[widget]
    [[parts]]
        size = integer(min=1, default=3)
        ratio = float(default=0.5)
        label = string(default='plain')
"""


class ConfigTestCase(unittest.TestCase):

    def setUp(self):
        self.directory = tempfile.mkdtemp()
        self.home = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.directory)
        shutil.rmtree(self.home)

    def write(self, directory, name, text):
        with open(os.path.join(directory, name), 'w') as f:
            f.write(text)

    def test_config_flavor(self):
        assert_that(config_flavor('widget'), is_('widget'))
        assert_that(config_flavor('widget', 'default'), is_('widget.default'))

    def test_config_filename(self):
        assert_that(config_filename('widget.default', '/etc'), is_(os.path.join('/etc', 'widget.default.cfg')))

    def test_map_os_name(self):
        assert_that(map_os_name('Windows'), is_('windows'))
        assert_that(map_os_name('Darwin'), is_('osx'))
        assert_that(map_os_name('Linux'), is_('linux'))

    @patch('hublink.config.config.os_name', return_value='linux')
    def test_settings_files_in_precedence_order(self, os_name):
        files = settings_files('widget', '/pkg', '/home/me')
        assert_that(files, contains_exactly(os.path.join('/pkg', 'widget.default.cfg'),
                                            os.path.join('/pkg', 'widget.linux.cfg'),
                                            os.path.join('/home/me', 'widget.cfg'),
                                            os.path.join('/pkg', 'widget.cfg')))

    def test_missing_file_must_exist(self):
        assert_that(calling(load_config_file).with_args('/no/such/file.cfg', True), raises(IOError))

    def test_missing_file_optional(self):
        assert_that(load_config_file('/no/such/file.cfg'), is_(equal_to({})))

    def test_invalid_syntax_names_file(self):
        self.write(self.directory, 'bad.cfg', '[[[too deep]]]\n')
        file = os.path.join(self.directory, 'bad.cfg')
        assert_that(calling(load_config_file).with_args(file), raises(ConfigObjError, 'at .*bad.cfg'))

    def test_schema_fills_defaults_and_converts(self):
        self.write(self.directory, 'widget.schema.cfg', schema)
        self.write(self.directory, 'widget.default.cfg', '[widget]\n[[parts]]\nsize = 7\n')
        conf = load_config('widget', self.directory, self.home)
        parts = conf['widget']['parts']
        assert_that(parts['size'], is_(7))
        assert_that(parts['ratio'], is_(0.5))
        assert_that(parts['label'], is_('plain'))

    def test_user_overrides_default_and_local_overrides_user(self):
        self.write(self.directory, 'widget.schema.cfg', schema)
        self.write(self.directory, 'widget.default.cfg', '[widget]\n[[parts]]\nsize = 7\nlabel = shipped\n')
        self.write(self.home, 'widget.cfg', '[widget]\n[[parts]]\nsize = 8\nlabel = user\n')
        self.write(self.directory, 'widget.cfg', '[widget]\n[[parts]]\nlabel = local\n')
        parts = load_config('widget', self.directory, self.home)['widget']['parts']
        assert_that(parts['size'], is_(8))
        assert_that(parts['label'], is_('local'))

    def test_invalid_value_fails_validation(self):
        self.write(self.directory, 'widget.schema.cfg', schema)
        self.write(self.home, 'widget.cfg', '[widget]\n[[parts]]\nsize = 0\n')
        assert_that(calling(load_config).with_args('widget', self.directory, self.home),
                    raises(ConfigObjError, "the config file widget failed validation"))

    def test_no_schema_loads_unvalidated(self):
        self.write(self.directory, 'widget.cfg', '[widget]\nsize = 7\n')
        assert_that(load_config('widget', self.directory, self.home)['widget']['size'], is_('7'))

    def test_non_existent_config_path(self):
        assert_that(fetch_conf_path(ConfigObj(), ['a', 'b']), is_(none()))

    def test_apply_conf_sets_known_attributes_only(self):
        target = types.SimpleNamespace(size=1)
        apply_conf({'size': 5, 'missing_value': 2}, target)
        assert_that(target.size, is_(5))
        assert_that(target, is_not(has_property('missing_value')))

    def test_configure_module(self):
        self.write(self.directory, 'widget.schema.cfg', schema)
        self.write(self.directory, 'widget.cfg', '[widget]\n[[parts]]\nsize = 11\n')
        module = types.ModuleType('widget.parts')
        module.__file__ = os.path.join(self.directory, 'parts.py')
        module.size = 1
        module.ratio = 0.0
        configure_module(module, 'widget', self.home)
        assert_that(module.size, is_(11))
        assert_that(module.ratio, is_(0.5))

    def test_configure_module_without_section_leaves_module(self):
        module = types.ModuleType('elsewhere.mod')
        module.__file__ = os.path.join(self.directory, 'mod.py')
        configure_module(module, 'widget', self.home)


class DefaultsTest(unittest.TestCase):

    def test_library_defaults_are_typed(self):
        from hublink import defaults
        assert_that(isinstance(defaults.send_period_millis, int), is_(True))
        assert_that(isinstance(defaults.close_timeout_secs, float), is_(True))
        assert_that(defaults.upload_workers >= 1, is_(True))
