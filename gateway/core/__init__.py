"""Provider dispatch and response transcoding."""
