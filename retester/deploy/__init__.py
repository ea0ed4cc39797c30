"""Contract deployment: ABI encoding and setcode/setabi submission."""
