# Core package: configuration, logging, security and HTTP plumbing shared by
# every controller.
