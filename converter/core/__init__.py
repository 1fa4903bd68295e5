"""Format-independent normalization: units, vocabulary and segmentation."""
