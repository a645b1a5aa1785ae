"""Progress core: dependency graph, propagation and team views."""
