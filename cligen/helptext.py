r"""
Plain-text help synthesis for one command.

The text is built by concatenation in a fixed order, so it is byte-identical
for a given descriptor:

    <name> - <description>

    Usage: <name> [PARAMETERS] [OPTIONS]

    Parameters:                      (only when the command has parameters)
      <field>\t<description>         (sorted by index)

    Options:                         (only when the command has options)
      <alias, alias>\t<description>  (descriptor order)

followed by a trailing blank line.
"""
from .descriptors import CommandDescriptor


def render_help(descriptor, /):
    """
    Render the help text of a command descriptor (pure, no side effects).
    """
    if not isinstance(descriptor, CommandDescriptor):
        raise TypeError("render_help() argument must be a command descriptor")

    parts = [
        "%s - %s\n" % (descriptor.name, descriptor.description),
        "\nUsage: %s [PARAMETERS] [OPTIONS]\n" % descriptor.name,
    ]

    if descriptor.parameters:
        parts.append("\nParameters:\n")
        # sorted() is stable: parameters sharing an index keep declaration order
        for parameter in sorted(descriptor.parameters, key=lambda parameter: parameter.index):
            parts.append("  %s\t%s\n" % (parameter.field, parameter.description))

    if descriptor.options:
        parts.append("\nOptions:\n")
        for option in descriptor.options:
            parts.append("  %s\t%s\n" % (", ".join(option.aliases), option.description))

    parts.append("\n")
    return "".join(parts)


__all__ = (
    "render_help",
)
