# Rendering core of the orchestration dashboard
#
# Everything a pane or a headless consumer needs is importable from here:
#
#   from oms_tui import (
#       build_render_blocks, render_rpc_events, render_markdown_lines,
#       visible_width, clip_ansi, AgentPane, TaskDetailsPane,
#   )
#
# Lazy loading: imports are deferred via __getattr__ so that importing the
# package does not pull in rich and markdown-it until they are used.

# Mapping from public name -> (module_path, attribute_name)
_LAZY_IMPORTS = {
    # Text metrics
    "visible_width": (".display_width", "visible_width"),
    "clip_text": (".display_width", "clip_text"),
    "clip_ansi": (".display_width", "clip_ansi"),
    "pad_to_width": (".display_width", "pad_to_width"),
    "clip_pad_ansi": (".display_width", "clip_pad_ansi"),
    "wrap_ansi": (".display_width", "wrap_ansi"),
    "strip_ansi": (".display_width", "strip_ansi"),
    # Event compilation
    "TextBlock": (".blocks", "TextBlock"),
    "ToolBlock": (".blocks", "ToolBlock"),
    "SeparatorBlock": (".blocks", "SeparatorBlock"),
    "EventBlockCompiler": (".event_compiler", "EventBlockCompiler"),
    "build_render_blocks": (".event_compiler", "build_render_blocks"),
    # Rendering
    "MarkdownRenderer": (".markdown", "MarkdownRenderer"),
    "render_markdown_lines": (".markdown", "render_markdown_lines"),
    "RenderOptions": (".block_renderer", "RenderOptions"),
    "render_blocks_to_lines": (".block_renderer", "render_blocks_to_lines"),
    "get_rendered_rpc_lines": (".block_renderer", "get_rendered_rpc_lines"),
    "render_rpc_events": (".block_renderer", "render_rpc_events"),
    "render_tool_block_lines": (".tool_renderer", "render_tool_block_lines"),
    # Viewport
    "ViewportCache": (".viewport", "ViewportCache"),
    "ScrollState": (".viewport", "ScrollState"),
    "Viewport": (".viewport", "Viewport"),
    # Panes and collaborator models
    "AgentPane": (".agent_pane", "AgentPane"),
    "TaskDetailsPane": (".task_details", "TaskDetailsPane"),
    "AgentInfo": (".models", "AgentInfo"),
    "AgentUsage": (".models", "AgentUsage"),
    "TaskIssue": (".models", "TaskIssue"),
    # Configuration and errors
    "RenderConfig": (".config", "RenderConfig"),
    "get_config": (".config", "get_config"),
    "set_config": (".config", "set_config"),
    "load_config": (".config", "load_config"),
    "OmsTuiError": (".errors", "OmsTuiError"),
    "ConfigError": (".errors", "ConfigError"),
    "EventLogError": (".errors", "EventLogError"),
}


def __getattr__(name):
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        import importlib
        module = importlib.import_module(module_path, __name__)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = list(_LAZY_IMPORTS)
