import os
from pathlib import Path
from typing import Dict


class PromptManager:
    """
    Manages loading and formatting of prompt templates.

    Templates are plain ``.txt`` files using ``str.format`` placeholders, so
    they must not contain literal braces. Values substituted into a template
    are never re-parsed, which keeps user-authored character text safe to
    insert even when it contains braces of its own.
    """

    def __init__(self, prompts_dir: str = None):
        """
        Args:
            prompts_dir: Directory containing prompt templates. Defaults to
                         the ``prompts`` directory next to this module.
        """
        if prompts_dir is None:
            self.prompts_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "prompts")
        else:
            self.prompts_dir = prompts_dir

        self.templates: Dict[str, str] = {}
        self._load_templates()

    def _load_templates(self):
        """Load all template files from the prompts directory."""
        prompts_path = Path(self.prompts_dir)
        for template_file in prompts_path.glob("*.txt"):
            with open(template_file, "r", encoding="utf-8") as f:
                self.templates[template_file.stem] = f.read()

    def get_template(self, template_name: str) -> str:
        """
        Get the raw template content by name.

        Raises:
            KeyError: If the template does not exist
        """
        if template_name not in self.templates:
            raise KeyError(f"Template '{template_name}' not found in {self.prompts_dir}")
        return self.templates[template_name]

    def format_template(self, template_name: str, **kwargs) -> str:
        """
        Format a template with the provided values.

        List values are joined with blank lines and ``None`` becomes an empty
        string, so optional sections can be passed straight through.
        """
        template = self.get_template(template_name)

        formatted_kwargs = {}
        for key, value in kwargs.items():
            if value is None:
                formatted_kwargs[key] = ""
            elif isinstance(value, list):
                formatted_kwargs[key] = "\n\n".join(str(item) for item in value)
            else:
                formatted_kwargs[key] = value

        return template.format(**formatted_kwargs)


# Create a singleton instance
prompt_manager = PromptManager()
