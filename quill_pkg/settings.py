#!/usr/bin/env python3
"""
Settings loader for the Quill blog generator.
Supports configuration from quill.yml, quill.yaml, or quill.json files.
"""

import os
import json
import yaml
from typing import Dict, Any, Optional


class QuillSettings:
    """Load and manage Quill configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'source': 'src',
        'content': 'content',
        'output': 'dist',
        'blog_dir': 'blog',
        'watch': False,
        'debounce': 0.3,
        'blame_workers': None,
        'blame_timeout': None,
        'deploy_source': None,
        'ftp_destination': '',
        'purge_domain': None,
        'purge_endpoint': None,
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['quill.yml', 'quill.yaml', 'quill.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from configuration file if it exists.

        Returns:
            Dictionary of configuration settings
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            try:
                loaded_settings = self._load_config_file(config_file)
                if loaded_settings:
                    self.settings.update(loaded_settings)
                    print(f"Loaded configuration from: {os.path.relpath(config_file)}")
            except (ValueError, IOError, OSError) as e:
                print(f"Warning: Failed to load config file {config_file}: {e}")

        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        """Return the first configuration file that exists, or None."""
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    loaded = yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    loaded = json.load(f) or {}
                else:
                    raise ValueError(f"Unsupported config file format: {file_ext}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_path}: {e}")
        except PermissionError:
            raise PermissionError(f"Permission denied reading configuration file: {config_path}")

        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        return loaded

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        if file_format not in ['yml', 'yaml', 'json']:
            raise ValueError(f"Unsupported config file format: {file_format}")

        filename = f'quill.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# Quill Configuration File\n\n")
                    f.write("# Build settings\n")
                    f.write("source: src\n")
                    f.write("content: content\n")
                    f.write("output: dist\n")
                    f.write("blog_dir: blog\n\n")
                    f.write("# Post history (git blame)\n")
                    f.write("blame_workers: 8\n")
                    f.write("blame_timeout: 30  # seconds, omit to wait forever\n\n")
                    f.write("# Development settings\n")
                    f.write("watch: false\n")
                    f.write("debounce: 0.3\n\n")
                    f.write("# Deployment (credentials come from FTP_* and PURGE_SECRET env vars)\n")
                    f.write("ftp_destination: ''\n")
                    f.write("purge_domain: example.com\n")
                    f.write("purge_endpoint: https://purge.example.com/purge\n")
                elif file_format == 'json':
                    sample_config = dict(self.DEFAULT_SETTINGS)
                    sample_config.update({
                        'blame_workers': 8,
                        'blame_timeout': 30,
                        'purge_domain': 'example.com',
                        'purge_endpoint': 'https://purge.example.com/purge',
                    })
                    json.dump(sample_config, f, indent=2)
        except PermissionError:
            raise PermissionError(f"Permission denied creating configuration file: {config_path}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.

        Args:
            args_dict: Dictionary of command-line arguments

        Returns:
            Merged configuration dictionary
        """
        merged = self.settings.copy()

        for key, value in args_dict.items():
            if value is not None:
                merged[key] = value

        return merged
