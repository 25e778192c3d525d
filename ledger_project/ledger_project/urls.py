# The HTTP surface lives outside this project; no routes are mounted here.
urlpatterns = []
