# This module handles Context engineering

#  +---------------------------+
# |        Memory             |   (Thread-keyed, in-process)
# |---------------------------|
# | Conversation messages     |
# | Indexed note chunks       |
# +---------------------------+

# +---------------------------+
# |     Context snapshot      |   (Fresh every request, never stored)
# |---------------------------|
# | Page / component          |
# | Open post / note ids      |
# | Page state                |
# +---------------------------+

#    \    /
#     \  /
#      \/
# +--------------------------------+
# |           Context              |   (Assembled per turn)
# |--------------------------------|
# | Context keys -> visible tools  |
# | Open post / note details       |
# | Brand voice rules              |
# | Current date                   |
# | Relevant documents (search)    |
# +--------------------------------+
#         |
#         v
#   [system prompt -> chat model]
