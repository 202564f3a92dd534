import importlib

mod = "jsonexplorer"
class LazyLoader:
    """
    Lazy loader for the jsonexplorer functions to speed up startup time.
    """
    def __init__(self, mappings):
        self._modules = {}
        self._mappings = mappings

    def _load_module(self, module_name):
        if module_name not in self._modules:
            self._modules[module_name] = importlib.import_module(module_name)
        return self._modules[module_name]

    def __getattr__(self, item):
        if item in self._mappings:
            module_name, func_name = self._mappings[item]
            module = self._load_module(module_name)
            return getattr(module, func_name)
        else:
            return self._load_module(f"{mod}.{item}")

# Define the functions and their corresponding module paths
_mappings = {
    "classify": (f"{mod}.jsontypes", "classify"),
    "classify_schema": (f"{mod}.jsontypes", "classify_schema"),
    "json_equal": (f"{mod}.jsontypes", "json_equal"),
    "validate_json_schema": (f"{mod}.schemavalidator", "validate_json_schema"),
    "SchemaValidator": (f"{mod}.schemavalidator", "SchemaValidator"),
    "ValidationError": (f"{mod}.schemavalidator", "ValidationError"),
    "search": (f"{mod}.treesearch", "search"),
    "SearchResult": (f"{mod}.treesearch", "SearchResult"),
    "SearchSession": (f"{mod}.treesearch", "SearchSession"),
    "collect_metrics": (f"{mod}.metrics", "collect_metrics"),
    "parse_json_with_metrics": (f"{mod}.metrics", "parse_json_with_metrics"),
    "ParseMetrics": (f"{mod}.metrics", "ParseMetrics"),
    "JsonParseError": (f"{mod}.metrics", "JsonParseError"),
    "update_value_at_path": (f"{mod}.editing", "update_value_at_path"),
    "parse_edit_value": (f"{mod}.editing", "parse_edit_value"),
    "format_json": (f"{mod}.editing", "format_json"),
    "EditError": (f"{mod}.editing", "EditError"),
}

_lazy_loader = LazyLoader(_mappings)

def __getattr__(name):
    return getattr(_lazy_loader, name)

