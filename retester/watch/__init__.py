"""Change detection: artifact discovery, detectors, and the change tracker."""
