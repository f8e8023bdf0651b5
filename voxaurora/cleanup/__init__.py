"""Grammar correction of transcripts."""
