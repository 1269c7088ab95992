"""Click subcommands for the depdoctor CLI."""
