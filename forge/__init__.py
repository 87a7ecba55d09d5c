"""FigmaForge design-tree compiler: Figma manifest JSON -> Roblox .rbxmx."""

__version__ = "1.0.0"
